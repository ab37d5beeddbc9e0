"""
Assignment log repository (persistence).

Logs are append-only. The one permitted update is attaching
`assignment_duration` to a superseded record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.assignment_log import (
    Assignee,
    AssignmentLog,
    AssignmentMethod,
    AssignmentReason,
    AssignmentType,
)
from repositories.pagination import Page
from repositories.serialization import (
    optional_uuid,
    parse_utc_datetime,
    raise_on_error,
    response_count,
    response_rows,
    to_iso_utc,
    uuid_str,
)

_LOGS_TABLE: str = "assignment_logs"


@dataclass(frozen=True, slots=True)
class AssignmentLogFilters:
    enquiry_id: Optional[UUID] = None
    assigned_to: Optional[UUID] = None
    assigned_by: Optional[UUID] = None
    assignment_type: Optional[AssignmentType] = None
    assignment_method: Optional[AssignmentMethod] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None

    def matches(self, log: AssignmentLog) -> bool:
        if self.enquiry_id is not None and log.enquiry_id != self.enquiry_id:
            return False
        if self.assigned_to is not None and log.new_assignee.user_id != self.assigned_to:
            return False
        if self.assigned_by is not None and log.assigned_by != self.assigned_by:
            return False
        if self.assignment_type is not None and log.assignment_type != self.assignment_type:
            return False
        if self.assignment_method is not None and log.assignment_method != self.assignment_method:
            return False
        if self.since is not None and log.timestamp < self.since:
            return False
        if self.until is not None and log.timestamp > self.until:
            return False
        return True


def _assignee_to_json(assignee: Assignee) -> dict[str, Any]:
    return {"user_id": uuid_str(assignee.user_id), "team": assignee.team}


def _assignee_from_json(data: Optional[Mapping[str, Any]]) -> Assignee:
    if not data:
        return Assignee()
    return Assignee(user_id=optional_uuid(data.get("user_id")), team=data.get("team"))


def log_to_row(log: AssignmentLog) -> dict[str, Any]:
    row = {
        "assignment_log_id": log.assignment_log_id,
        "enquiry_id": str(log.enquiry_id),
        "old_assignee": _assignee_to_json(log.old_assignee),
        "new_assignee": _assignee_to_json(log.new_assignee),
        # Flattened copy of new_assignee.user_id so per-user queries can filter on a column.
        "new_assignee_user_id": uuid_str(log.new_assignee.user_id),
        "assigned_by": uuid_str(log.assigned_by),
        "assignment_type": log.assignment_type.value,
        "assignment_reason": log.assignment_reason.value,
        "assignment_method": log.assignment_method.value,
        "remarks": log.remarks,
        "timestamp": to_iso_utc(log.timestamp),
        "assignment_duration": log.assignment_duration,
        "metadata": dict(log.metadata),
    }
    if log.id is not None:
        row["id"] = str(log.id)
    return row


def row_to_log(row: Mapping[str, Any]) -> AssignmentLog:
    duration = row.get("assignment_duration")
    return AssignmentLog(
        id=optional_uuid(row.get("id")),
        assignment_log_id=str(row["assignment_log_id"]),
        enquiry_id=UUID(str(row["enquiry_id"])),
        old_assignee=_assignee_from_json(row.get("old_assignee")),
        new_assignee=_assignee_from_json(row.get("new_assignee")),
        assigned_by=optional_uuid(row.get("assigned_by")),
        assignment_type=AssignmentType(row["assignment_type"]),
        assignment_reason=AssignmentReason(row["assignment_reason"]),
        assignment_method=AssignmentMethod(row["assignment_method"]),
        remarks=row.get("remarks"),
        timestamp=parse_utc_datetime(row["timestamp"]),
        assignment_duration=int(duration) if duration is not None else None,
        metadata=row.get("metadata") or {},
    )


class AssignmentLogRepository:
    """Supabase-backed persistence for assignment history."""

    def __init__(self, client: Any):
        self._client = client

    def _table(self) -> Any:
        return self._client.table(_LOGS_TABLE)

    def _apply_filters(self, query: Any, filters: AssignmentLogFilters) -> Any:
        if filters.enquiry_id is not None:
            query = query.eq("enquiry_id", str(filters.enquiry_id))
        if filters.assigned_to is not None:
            query = query.eq("new_assignee_user_id", str(filters.assigned_to))
        if filters.assigned_by is not None:
            query = query.eq("assigned_by", str(filters.assigned_by))
        if filters.assignment_type is not None:
            query = query.eq("assignment_type", filters.assignment_type.value)
        if filters.assignment_method is not None:
            query = query.eq("assignment_method", filters.assignment_method.value)
        if filters.since is not None:
            query = query.gte("timestamp", to_iso_utc(filters.since, name="since"))
        if filters.until is not None:
            query = query.lte("timestamp", to_iso_utc(filters.until, name="until"))
        return query

    def insert(self, log: AssignmentLog) -> AssignmentLog:
        response = self._table().insert(log_to_row(log)).execute()
        rows = response_rows(response, "insert assignment log")
        return row_to_log(rows[0]) if rows else log

    def latest_for_enquiry(self, enquiry_id: UUID) -> Optional[AssignmentLog]:
        response = (
            self._table()
            .select("*")
            .eq("enquiry_id", str(enquiry_id))
            .order("timestamp", desc=True)
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "fetch latest assignment log")
        return row_to_log(rows[0]) if rows else None

    def set_duration(self, assignment_log_id: str, minutes: int) -> None:
        response = (
            self._table()
            .update({"assignment_duration": minutes})
            .eq("assignment_log_id", assignment_log_id)
            .execute()
        )
        raise_on_error(response, "set assignment duration")

    def history_for_enquiry(self, enquiry_id: UUID) -> List[AssignmentLog]:
        """All logs for one enquiry, newest first."""

        response = (
            self._table()
            .select("*")
            .eq("enquiry_id", str(enquiry_id))
            .order("timestamp", desc=True)
            .execute()
        )
        return [row_to_log(r) for r in response_rows(response, "fetch assignment history")]

    def count_for_assignee_since(self, user_id: UUID, since: datetime) -> int:
        """Number of assignments `user_id` has received at or after `since`."""

        response = (
            self._table()
            .select("id", count="exact")
            .eq("new_assignee_user_id", str(user_id))
            .gte("timestamp", to_iso_utc(since, name="since"))
            .execute()
        )
        return response_count(response, "count assignments")

    def list(self, filters: AssignmentLogFilters, page: int, limit: int) -> Page[AssignmentLog]:
        offset = (page - 1) * limit
        query = self._apply_filters(self._table().select("*", count="exact"), filters)
        response = query.order("timestamp", desc=True).range(offset, offset + limit - 1).execute()
        rows = response_rows(response, "list assignment logs")
        total = response_count(response, "list assignment logs")
        return Page(items=[row_to_log(r) for r in rows], page=page, limit=limit, total=total)

    def list_all(self, filters: AssignmentLogFilters) -> List[AssignmentLog]:
        query = self._apply_filters(self._table().select("*"), filters)
        response = query.order("timestamp", desc=True).execute()
        return [row_to_log(r) for r in response_rows(response, "list assignment logs")]

    def last_code_with_prefix(self, prefix: str) -> Optional[str]:
        response = (
            self._table()
            .select("assignment_log_id")
            .like("assignment_log_id", f"{prefix}-%")
            .order("assignment_log_id", desc=True)
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "read last assignment log id")
        return rows[0]["assignment_log_id"] if rows else None


__all__ = ["AssignmentLogFilters", "AssignmentLogRepository", "log_to_row", "row_to_log"]
