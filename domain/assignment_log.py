"""
Domain: Assignment history records.

Contract excerpts implemented here:
- One AssignmentLog is written for every assignment decision (manual or auto).
- Both the previous and the new assignee are captured; the previous one may be
  absent (first assignment).
- Records are write-once; the only later change is `assignment_duration`
  (whole minutes), attached when a newer assignment supersedes the record.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from .time import require_utc_timestamp, whole_minutes_between


class AssignmentType(str, Enum):
    USER = "user"
    TEAM = "team"
    QUEUE = "queue"
    AUTO_ASSIGNMENT = "auto_assignment"
    MANUAL_ASSIGNMENT = "manual_assignment"
    REASSIGNMENT = "reassignment"


class AssignmentReason(str, Enum):
    INITIAL_ASSIGNMENT = "initial_assignment"
    WORKLOAD_BALANCING = "workload_balancing"
    SKILL_MATCH = "skill_match"
    ESCALATION = "escalation"
    USER_REQUEST = "user_request"
    SYSTEM_AUTO = "system_auto"
    MANUAL_OVERRIDE = "manual_override"
    AVAILABILITY_CHANGE = "availability_change"
    PERFORMANCE_BASED = "performance_based"
    GEOGRAPHIC_ROUTING = "geographic_routing"


class AssignmentMethod(str, Enum):
    ROUND_ROBIN = "round_robin"
    SKILL_BASED = "skill_based"
    WORKLOAD_BASED = "workload_based"
    MANUAL = "manual"
    RANDOM = "random"
    PRIORITY_BASED = "priority_based"


@dataclass(frozen=True, slots=True)
class Assignee:
    user_id: Optional[UUID] = None
    team: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.user_id is None and self.team is None


@dataclass(frozen=True, slots=True)
class AssignmentLog:
    assignment_log_id: str
    enquiry_id: UUID
    old_assignee: Assignee
    new_assignee: Assignee
    assigned_by: Optional[UUID]
    assignment_type: AssignmentType
    assignment_reason: AssignmentReason
    assignment_method: AssignmentMethod
    timestamp: datetime

    remarks: Optional[str] = None
    assignment_duration: Optional[int] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    id: Optional[UUID] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("timestamp", self.timestamp)

    def superseded_at(self, later: datetime) -> "AssignmentLog":
        """Return a copy carrying the duration until `later`; already-set durations stick."""

        if self.assignment_duration is not None:
            return self
        return replace(self, assignment_duration=whole_minutes_between(self.timestamp, later))


__all__ = [
    "Assignee",
    "AssignmentLog",
    "AssignmentMethod",
    "AssignmentReason",
    "AssignmentType",
]
