"""
Assignment history queries and analytics.

Aggregations run in-process over the rows returned for the requested window;
the windows these reports are asked for (days to a few months) keep that small.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from domain.assignment_log import AssignmentLog
from domain.enquiry import OPEN_STATUSES
from domain.errors import ValidationError
from repositories.assignment_log_repository import AssignmentLogFilters
from repositories.enquiry_repository import EnquiryFilters
from repositories.pagination import Page, clamp_page
from services.context import ServiceContext


@dataclass(frozen=True, slots=True)
class AssignmentBreakdown:
    """One row of the analytics report: a (type, method) group."""

    assignment_type: str
    assignment_method: str
    count: int
    average_duration_minutes: Optional[float]


@dataclass(frozen=True, slots=True)
class DailyAssignmentCount:
    date: str
    assignment_type: str
    count: int
    average_duration_minutes: Optional[float]


@dataclass(frozen=True, slots=True)
class WorkloadEntry:
    user_id: UUID
    name: Optional[str]
    team: Optional[str]
    open_enquiries: int


def _average(values: Sequence[int]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def _require_window(start: Optional[datetime], end: Optional[datetime]) -> Tuple[datetime, datetime]:
    if start is None or end is None:
        raise ValidationError(["Start date and end date are required"])
    if end < start:
        raise ValidationError(["End date must not be before start date"])
    return start, end


class AssignmentHistoryService:
    def __init__(self, ctx: ServiceContext):
        self._ctx = ctx

    def enquiry_history(self, enquiry_id: UUID, limit: Optional[int] = None) -> List[AssignmentLog]:
        """Assignment records of one enquiry, newest first."""

        history = self._ctx.assignment_logs.history_for_enquiry(enquiry_id)
        return history[:limit] if limit else history

    def list_logs(self, filters: AssignmentLogFilters, page: int = 1, limit: int = 10) -> Page[AssignmentLog]:
        page, limit = clamp_page(page, limit)
        return self._ctx.assignment_logs.list(filters, page, limit)

    def user_stats(
        self,
        user_id: UUID,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[DailyAssignmentCount]:
        """Assignments received by `user_id` per UTC day and type, newest day first."""

        start, end = _require_window(start, end)
        logs = self._ctx.assignment_logs.list_all(AssignmentLogFilters(assigned_to=user_id, since=start, until=end))

        groups: Dict[Tuple[str, str], List[AssignmentLog]] = defaultdict(list)
        for log in logs:
            groups[(log.timestamp.strftime("%Y-%m-%d"), log.assignment_type.value)].append(log)

        rows = [
            DailyAssignmentCount(
                date=day,
                assignment_type=kind,
                count=len(items),
                average_duration_minutes=_average(
                    [i.assignment_duration for i in items if i.assignment_duration is not None]
                ),
            )
            for (day, kind), items in groups.items()
        ]
        return sorted(rows, key=lambda r: (r.date, r.assignment_type), reverse=True)

    def analytics(self, start: Optional[datetime], end: Optional[datetime]) -> List[AssignmentBreakdown]:
        """Count and average duration per (assignment type, method), largest group first."""

        start, end = _require_window(start, end)
        logs = self._ctx.assignment_logs.list_all(AssignmentLogFilters(since=start, until=end))

        groups: Dict[Tuple[str, str], List[AssignmentLog]] = defaultdict(list)
        for log in logs:
            groups[(log.assignment_type.value, log.assignment_method.value)].append(log)

        rows = [
            AssignmentBreakdown(
                assignment_type=kind,
                assignment_method=method,
                count=len(items),
                average_duration_minutes=_average(
                    [i.assignment_duration for i in items if i.assignment_duration is not None]
                ),
            )
            for (kind, method), items in groups.items()
        ]
        return sorted(rows, key=lambda r: (-r.count, r.assignment_type, r.assignment_method))

    def workload(self) -> List[WorkloadEntry]:
        """Open (New / In Progress) enquiries per assignee, busiest first."""

        counts: Dict[Any, int] = self._ctx.enquiries.count_by(
            "assigned_to", EnquiryFilters(statuses=list(OPEN_STATUSES))
        )
        user_ids = [UUID(str(k)) for k in counts if k is not None]
        users = {u.user_id: u for u in self._ctx.users.get_many(user_ids)}

        entries = []
        for key, count in counts.items():
            if key is None:
                continue
            user_id = UUID(str(key))
            user = users.get(user_id)
            entries.append(
                WorkloadEntry(
                    user_id=user_id,
                    name=user.name if user else None,
                    team=user.team if user else None,
                    open_enquiries=count,
                )
            )
        return sorted(entries, key=lambda e: (-e.open_enquiries, str(e.user_id)))


__all__ = [
    "AssignmentBreakdown",
    "AssignmentHistoryService",
    "DailyAssignmentCount",
    "WorkloadEntry",
]
