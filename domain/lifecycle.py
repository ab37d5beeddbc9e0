"""
Domain: Enquiry lifecycle state machine (pure).

Contract excerpts implemented here:
- Explicit status changes drive the stage:
    New → Captured, Unknown → Telecaller Queue, In Progress → Action in Progress,
    Quoted → Quoted, Converted → Closed - Converted (+closed_at),
    Rejected → Closed - Rejected (+closed_at), Archived → Archived.
  Statuses without an entry leave the stage untouched.
- Every status change appends exactly one remark
  "Status changed from <old> to <new>" attributed to the acting user.
- Profile identification (Unknown → known) forces status New and stage
  Profile Identified.
- Priority changes recompute SLA deadlines anchored at `created_at`.
- Assignment moves a not-yet-worked enquiry to stage Assigned; a failed or
  deferred assignment moves it to Assignment Pending.

Every function returns a new Enquiry; nothing here touches storage.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Mapping, Optional, Tuple
from uuid import UUID

from .enquiry import Enquiry, EnquiryProfile, EnquiryStage, EnquiryStatus, Priority
from .sla import SlaConfig, compute_due_dates
from .time import require_utc_timestamp

STATUS_STAGE: Mapping[EnquiryStatus, EnquiryStage] = {
    EnquiryStatus.NEW: EnquiryStage.CAPTURED,
    EnquiryStatus.UNKNOWN: EnquiryStage.TELECALLER_QUEUE,
    EnquiryStatus.IN_PROGRESS: EnquiryStage.ACTION_IN_PROGRESS,
    EnquiryStatus.QUOTED: EnquiryStage.QUOTED,
    EnquiryStatus.CONVERTED: EnquiryStage.CLOSED_CONVERTED,
    EnquiryStatus.REJECTED: EnquiryStage.CLOSED_REJECTED,
    EnquiryStatus.ARCHIVED: EnquiryStage.ARCHIVED,
}

CLOSING_STATUSES = frozenset({EnquiryStatus.CONVERTED, EnquiryStatus.REJECTED})

# Stages an enquiry can be in before anyone has started working it.
PRE_ASSIGNMENT_STAGES = frozenset(
    {
        EnquiryStage.TELECALLER_QUEUE,
        EnquiryStage.CAPTURED,
        EnquiryStage.PROFILE_IDENTIFIED,
        EnquiryStage.ASSIGNMENT_PENDING,
    }
)


def status_change_remark(old: EnquiryStatus, new: EnquiryStatus) -> str:
    return f"Status changed from {old.value} to {new.value}"


def initial_lifecycle(profile: EnquiryProfile) -> Tuple[EnquiryStatus, EnquiryStage]:
    """Default (status, stage) for a freshly captured enquiry."""

    if profile == EnquiryProfile.UNKNOWN:
        return EnquiryStatus.UNKNOWN, EnquiryStage.TELECALLER_QUEUE
    return EnquiryStatus.NEW, EnquiryStage.CAPTURED


def apply_status_change(
    enquiry: Enquiry,
    new_status: EnquiryStatus,
    actor: Optional[UUID],
    now: datetime,
    old_status: Optional[EnquiryStatus] = None,
) -> Enquiry:
    """
    Transition `enquiry` to `new_status`.

    `old_status` is the status the change is reported from; it defaults to the
    enquiry's current status and differs only when an earlier step of the same
    update (profile identification) already moved it.

    Setting the current status again is not a transition and returns the
    enquiry unchanged.
    """

    require_utc_timestamp("now", now)
    if old_status is None:
        old_status = enquiry.status
    if new_status == old_status:
        return enquiry

    stage = STATUS_STAGE.get(new_status, enquiry.stage)
    closed_at = now if new_status in CLOSING_STATUSES else enquiry.closed_at

    updated = replace(
        enquiry,
        status=new_status,
        stage=stage,
        closed_at=closed_at,
        updated_at=now,
    )
    return updated.with_remark(status_change_remark(old_status, new_status), actor, now)


def profile_identified(old: EnquiryProfile, new: Optional[EnquiryProfile]) -> bool:
    return new is not None and old == EnquiryProfile.UNKNOWN and new != EnquiryProfile.UNKNOWN


def apply_profile_identification(enquiry: Enquiry, profile: EnquiryProfile, now: datetime) -> Enquiry:
    return replace(
        enquiry,
        enquiry_profile=profile,
        status=EnquiryStatus.NEW,
        stage=EnquiryStage.PROFILE_IDENTIFIED,
        updated_at=now,
    )


def apply_priority_change(enquiry: Enquiry, priority: Priority, config: SlaConfig) -> Enquiry:
    """Set `priority` and recompute deadlines from the original creation time."""

    due = compute_due_dates(priority, enquiry.created_at, config)
    return replace(
        enquiry,
        priority=priority,
        response_due=due.response_due,
        resolution_due=due.resolution_due,
    )


def mark_duplicate(enquiry: Enquiry, original_id: UUID) -> Enquiry:
    return replace(
        enquiry,
        is_duplicate=True,
        duplicate_of=original_id,
        status=EnquiryStatus.DUPLICATE,
        stage=EnquiryStage.VALIDATION,
    )


def mark_assigned(enquiry: Enquiry, user_id: UUID, team: Optional[str], now: datetime) -> Enquiry:
    stage = EnquiryStage.ASSIGNED if enquiry.stage in PRE_ASSIGNMENT_STAGES else enquiry.stage
    return replace(
        enquiry,
        assigned_to=user_id,
        assigned_team=team if team is not None else enquiry.assigned_team,
        stage=stage,
        updated_at=now,
    )


def mark_assignment_pending(enquiry: Enquiry, now: datetime) -> Enquiry:
    return replace(enquiry, stage=EnquiryStage.ASSIGNMENT_PENDING, updated_at=now)


__all__ = [
    "CLOSING_STATUSES",
    "PRE_ASSIGNMENT_STAGES",
    "STATUS_STAGE",
    "apply_priority_change",
    "apply_profile_identification",
    "apply_status_change",
    "initial_lifecycle",
    "mark_assigned",
    "mark_assignment_pending",
    "mark_duplicate",
    "profile_identified",
    "status_change_remark",
]
