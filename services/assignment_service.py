"""
Assignment engine.

Handles:
- Rule selection (highest priority first, first full match wins)
- Strategy application: round-robin, load-based, manual, fallback
- Manual assignment and bulk assignment by a user
- Recording exactly one AssignmentLog per assignment

Auto-assignment is best effort: any failure while selecting a rule or running a
strategy is logged and the enquiry is parked at stage "Assignment Pending".
Nothing raised inside `auto_assign` reaches the caller.

Known race: load counts and the round-robin cursor are read and written without
a lock, so two concurrent assignments may pick the same agent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from domain.assignment_log import Assignee, AssignmentMethod, AssignmentReason, AssignmentType
from domain.assignment_rule import AssignmentRule, RuleType, order_rules
from domain.conditions import first_matching_rule
from domain.enquiry import OPEN_STATUSES, Enquiry
from domain.errors import NotFoundError, ValidationError
from domain.lifecycle import mark_assigned, mark_assignment_pending
from domain.strategies import CandidateLoad, select_least_loaded, select_round_robin
from domain.time import start_of_utc_day
from services.assignment_recorder import AssignmentRecorder
from services.context import ServiceContext
from services.side_effects import PostCommitHooks

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AssignmentDecision:
    """
    Outcome of running a rule's strategy.

    user_id is None when the strategy declined to pick anyone.
    """

    user_id: Optional[UUID]
    method: AssignmentMethod
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AutoAssignResult:
    """
    enquiry: the enquiry as persisted after the attempt
    assigned: True when an agent was assigned
    rule_id: the rule that matched, if any
    outcome: short machine-readable reason (assigned, no_matching_rule,
             manual_rule, no_candidate, fallback_unset, error)
    """

    enquiry: Enquiry
    assigned: bool
    rule_id: Optional[str]
    outcome: str


@dataclass(frozen=True, slots=True)
class BulkResult:
    matched: int
    modified: int


class AssignmentService:
    def __init__(self, ctx: ServiceContext, recorder: Optional[AssignmentRecorder] = None):
        self._ctx = ctx
        self._recorder = recorder or AssignmentRecorder(ctx)

    # ------------------------------------------------------------------
    # Rule selection and strategies
    # ------------------------------------------------------------------

    def select_rule(self, enquiry: Enquiry) -> Optional[AssignmentRule]:
        """First active rule (in evaluation order) whose conditions all match."""

        return first_matching_rule(enquiry, order_rules(self._ctx.rules.list_active()))

    def _round_robin(self, rule: AssignmentRule) -> AssignmentDecision:
        pick = select_round_robin(rule.assignment_to, rule.rr_cursor)
        if pick is None:
            return AssignmentDecision(None, AssignmentMethod.ROUND_ROBIN)
        self._ctx.rules.set_cursor(rule.rule_id, pick.next_cursor)
        return AssignmentDecision(
            pick.member.user_id,
            AssignmentMethod.ROUND_ROBIN,
            {"rule_id": rule.rule_id, "pool_position": pick.position},
        )

    def _load_based(self, rule: AssignmentRule) -> AssignmentDecision:
        today = start_of_utc_day(self._ctx.clock())
        loads: List[CandidateLoad] = []
        for member in rule.assignment_to:
            assigned_today = 0
            if member.has_daily_cap:
                assigned_today = self._ctx.assignment_logs.count_for_assignee_since(member.user_id, today)
            loads.append(
                CandidateLoad(
                    member=member,
                    current_load=self._ctx.enquiries.count_assigned(member.user_id, OPEN_STATUSES),
                    assigned_today=assigned_today,
                )
            )

        best = select_least_loaded(loads)
        if best is None:
            return AssignmentDecision(None, AssignmentMethod.WORKLOAD_BASED)
        return AssignmentDecision(
            best.member.user_id,
            AssignmentMethod.WORKLOAD_BASED,
            {
                "rule_id": rule.rule_id,
                "workload_score": best.weighted_load,
                "current_load": best.current_load,
            },
        )

    def _decide(self, rule: AssignmentRule) -> AssignmentDecision:
        if rule.rule_type == RuleType.ROUND_ROBIN:
            return self._round_robin(rule)
        if rule.rule_type == RuleType.LOAD_BASED:
            return self._load_based(rule)
        if rule.rule_type == RuleType.FALLBACK:
            return AssignmentDecision(
                rule.fallback_user_id,
                AssignmentMethod.PRIORITY_BASED,
                {"rule_id": rule.rule_id},
            )
        return AssignmentDecision(None, AssignmentMethod.MANUAL)

    # ------------------------------------------------------------------
    # Auto assignment
    # ------------------------------------------------------------------

    def _park(self, enquiry: Enquiry, rule_id: Optional[str], outcome: str) -> AutoAssignResult:
        parked = mark_assignment_pending(enquiry, self._ctx.clock())
        try:
            self._ctx.enquiries.update(parked)
        except Exception:
            logger.exception(
                "Failed to persist Assignment Pending stage",
                extra={"enquiry_id": str(enquiry.id)},
            )
        return AutoAssignResult(parked, False, rule_id, outcome)

    def auto_assign(self, enquiry: Enquiry, hooks: PostCommitHooks) -> AutoAssignResult:
        """
        Run the rule engine for `enquiry` and persist the result.

        Notification to the new assignee is queued on `hooks`.
        """

        rule: Optional[AssignmentRule] = None
        try:
            rule = self.select_rule(enquiry)
            if rule is None:
                return self._park(enquiry, None, "no_matching_rule")
            if rule.rule_type == RuleType.MANUAL:
                return self._park(enquiry, rule.rule_id, "manual_rule")

            decision = self._decide(rule)
            if decision.user_id is None:
                if rule.rule_type == RuleType.FALLBACK:
                    # A fallback rule without a user leaves the enquiry as it is.
                    return AutoAssignResult(enquiry, False, rule.rule_id, "fallback_unset")
                return self._park(enquiry, rule.rule_id, "no_candidate")

            assigned = self._apply(
                enquiry,
                decision.user_id,
                assigned_by=None,
                assignment_type=AssignmentType.AUTO_ASSIGNMENT,
                reason=(
                    AssignmentReason.INITIAL_ASSIGNMENT
                    if enquiry.assigned_to is None
                    else AssignmentReason.SYSTEM_AUTO
                ),
                method=decision.method,
                remarks=f"Auto-assigned by rule {rule.name}",
                metadata=decision.metadata,
                team=None,
                hooks=hooks,
            )
        except Exception:
            logger.warning(
                "Auto-assignment failed; enquiry left for manual assignment",
                extra={
                    "enquiry_id": str(enquiry.id),
                    "rule_id": rule.rule_id if rule else None,
                },
                exc_info=True,
            )
            return self._park(enquiry, rule.rule_id if rule else None, "error")

        return AutoAssignResult(assigned, True, rule.rule_id, "assigned")

    # ------------------------------------------------------------------
    # Shared assignment path
    # ------------------------------------------------------------------

    def _apply(
        self,
        enquiry: Enquiry,
        user_id: UUID,
        assigned_by: Optional[UUID],
        assignment_type: AssignmentType,
        reason: AssignmentReason,
        method: AssignmentMethod,
        remarks: Optional[str],
        metadata: Dict[str, Any],
        team: Optional[str],
        hooks: PostCommitHooks,
    ) -> Enquiry:
        now = self._ctx.clock()
        user = self._ctx.users.get(user_id)
        if team is None and user is not None:
            team = user.team

        old = Assignee(enquiry.assigned_to, enquiry.assigned_team)
        updated = mark_assigned(enquiry, user_id, team, now)
        self._ctx.enquiries.update(updated)

        meta = dict(metadata)
        if user is not None and user.team:
            meta.setdefault("assigned_user_team", user.team)
        try:
            self._recorder.record(
                enquiry_id=enquiry.id,
                old_assignee=old,
                new_assignee=Assignee(user_id, updated.assigned_team),
                assigned_by=assigned_by,
                assignment_type=assignment_type,
                assignment_reason=reason,
                assignment_method=method,
                remarks=remarks,
                metadata=meta,
                at=now,
            )
        except Exception:
            # The assignment itself stands; only the history entry is lost.
            logger.exception(
                "Failed to record assignment log",
                extra={"enquiry_id": str(enquiry.id), "assigned_to": str(user_id)},
            )

        hooks.add(
            "notify_assignee",
            self._ctx.notifier.notify,
            user_id,
            "New enquiry assigned",
            f"Enquiry {updated.enquiry_code} ({updated.name}) has been assigned to you",
            updated.priority.value.lower(),
        )
        logger.info(
            "Enquiry assigned",
            extra={
                "enquiry_id": str(enquiry.id),
                "assigned_to": str(user_id),
                "assignment_method": method.value,
            },
        )
        return updated

    # ------------------------------------------------------------------
    # Manual assignment
    # ------------------------------------------------------------------

    def assign(
        self,
        enquiry_id: UUID,
        user_id: Optional[UUID],
        actor: UUID,
        hooks: PostCommitHooks,
        team: Optional[str] = None,
        reason: Optional[AssignmentReason] = None,
        method: Optional[AssignmentMethod] = None,
        assignment_type: Optional[AssignmentType] = None,
        remarks: Optional[str] = None,
    ) -> Enquiry:
        if user_id is None:
            raise ValidationError(["Please provide a user to assign to"])
        if self._ctx.users.get(user_id) is None:
            raise NotFoundError("User", user_id)
        enquiry = self._ctx.enquiries.get_by_id(enquiry_id)
        if enquiry is None:
            raise NotFoundError("Enquiry", enquiry_id)

        if assignment_type is None:
            assignment_type = (
                AssignmentType.REASSIGNMENT if enquiry.assigned_to is not None else AssignmentType.MANUAL_ASSIGNMENT
            )
        return self._apply(
            enquiry,
            user_id,
            assigned_by=actor,
            assignment_type=assignment_type,
            reason=reason or AssignmentReason.MANUAL_OVERRIDE,
            method=method or AssignmentMethod.MANUAL,
            remarks=remarks or "Manual assignment by user",
            metadata={},
            team=team,
            hooks=hooks,
        )

    def bulk_assign(
        self,
        enquiry_ids: Sequence[UUID],
        user_id: Optional[UUID],
        actor: UUID,
        hooks: PostCommitHooks,
    ) -> BulkResult:
        """
        Assign every listed enquiry to one user, one document at a time.

        Enquiries already assigned to `user_id` are matched but not modified.
        """

        if not enquiry_ids:
            raise ValidationError(["Please provide an array of enquiry IDs"])
        if user_id is None:
            raise ValidationError(["Please provide a user to assign to"])
        if self._ctx.users.get(user_id) is None:
            raise NotFoundError("User", user_id)

        enquiries = self._ctx.enquiries.get_many(list(enquiry_ids))
        modified = 0
        for enquiry in enquiries:
            if enquiry.assigned_to == user_id:
                continue
            self._apply(
                enquiry,
                user_id,
                assigned_by=actor,
                assignment_type=(
                    AssignmentType.REASSIGNMENT if enquiry.assigned_to is not None else AssignmentType.MANUAL_ASSIGNMENT
                ),
                reason=AssignmentReason.MANUAL_OVERRIDE,
                method=AssignmentMethod.MANUAL,
                remarks="Bulk assignment",
                metadata={"bulk": True},
                team=None,
                hooks=hooks,
            )
            modified += 1

        logger.info(
            "Bulk assignment finished",
            extra={"assigned_to": str(user_id), "matched": len(enquiries), "modified": modified},
        )
        return BulkResult(matched=len(enquiries), modified=modified)


__all__ = ["AssignmentDecision", "AssignmentService", "AutoAssignResult", "BulkResult"]
