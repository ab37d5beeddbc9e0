"""
Enquiry repository (persistence).

This module provides *only* persistence operations for the Enquiry aggregate.
No lifecycle rules (status/stage mapping, SLA, duplicate policy) belong here.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from domain.enquiry import (
    BusinessModel,
    CallStatus,
    Category,
    ChannelType,
    Enquiry,
    EnquiryProfile,
    EnquiryStage,
    EnquiryStatus,
    Priority,
    Remark,
    SourceType,
    TypeOfLead,
)
from repositories.pagination import Page
from repositories.serialization import (
    optional_datetime,
    optional_iso,
    optional_uuid,
    parse_utc_datetime,
    raise_on_error,
    response_count,
    response_rows,
    to_iso_utc,
    uuid_str,
)

# Supabase table name for Enquiry records.
# Keep this aligned with your database schema.
_ENQUIRIES_TABLE: str = "enquiries"

# Columns `distinct_values` / `count_by` may be asked about.
GROUPABLE_COLUMNS = (
    "status",
    "stage",
    "priority",
    "source_type",
    "channel_type",
    "type_of_lead",
    "enquiry_profile",
    "assigned_to",
    "call_status",
)


@dataclass(frozen=True, slots=True)
class EnquiryFilters:
    """
    Filter criteria for enquiry queries.

    `queue_assignees` selects enquiries that are unassigned OR assigned to one of
    the listed users (the telecaller queue).
    """

    statuses: Optional[List[EnquiryStatus]] = None
    exclude_statuses: Optional[List[EnquiryStatus]] = None
    stage: Optional[EnquiryStage] = None
    source_type: Optional[SourceType] = None
    priority: Optional[Priority] = None
    type_of_lead: Optional[TypeOfLead] = None
    assigned_to: Optional[UUID] = None
    unassigned_only: bool = False
    queue_assignees: Optional[List[UUID]] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    def matches(self, enquiry: Enquiry) -> bool:
        """In-process evaluation of the same filter (used for exports and tests)."""

        if self.statuses is not None and enquiry.status not in self.statuses:
            return False
        if self.exclude_statuses and enquiry.status in self.exclude_statuses:
            return False
        if self.stage is not None and enquiry.stage != self.stage:
            return False
        if self.source_type is not None and enquiry.source_type != self.source_type:
            return False
        if self.priority is not None and enquiry.priority != self.priority:
            return False
        if self.type_of_lead is not None and enquiry.type_of_lead != self.type_of_lead:
            return False
        if self.assigned_to is not None and enquiry.assigned_to != self.assigned_to:
            return False
        if self.unassigned_only and enquiry.assigned_to is not None:
            return False
        if self.queue_assignees is not None and not (
            enquiry.assigned_to is None or enquiry.assigned_to in self.queue_assignees
        ):
            return False
        if self.created_from is not None and enquiry.created_at < self.created_from:
            return False
        if self.created_to is not None and enquiry.created_at > self.created_to:
            return False
        return True


def _value(member: Any) -> Any:
    return member.value if member is not None else None


def _remark_to_json(remark: Remark) -> dict[str, Any]:
    return {
        "text": remark.text,
        "added_by": uuid_str(remark.added_by),
        "added_at": to_iso_utc(remark.added_at, name="added_at"),
    }


def _remark_from_json(data: Mapping[str, Any]) -> Remark:
    return Remark(
        text=str(data["text"]),
        added_by=optional_uuid(data.get("added_by")),
        added_at=parse_utc_datetime(data["added_at"]),
    )


def enquiry_to_row(enquiry: Enquiry) -> dict[str, Any]:
    """Convert a domain Enquiry to a Supabase row payload."""

    return {
        # Identity
        "id": str(enquiry.id),
        "enquiry_code": enquiry.enquiry_code,

        # Contact
        "name": enquiry.name,
        "mobile": enquiry.mobile,
        "email": enquiry.email,
        "company_name": enquiry.company_name,

        # Classification
        "type_of_lead": enquiry.type_of_lead.value,
        "source_type": enquiry.source_type.value,
        "enquiry_profile": enquiry.enquiry_profile.value,
        "channel_type": enquiry.channel_type.value,

        # Lifecycle
        "status": enquiry.status.value,
        "stage": enquiry.stage.value,
        "priority": enquiry.priority.value,
        "response_due": optional_iso(enquiry.response_due, name="response_due"),
        "resolution_due": optional_iso(enquiry.resolution_due, name="resolution_due"),

        # Type-specific details
        "business_model": _value(enquiry.business_model),
        "pv_capacity_kw": enquiry.pv_capacity_kw,
        "category": _value(enquiry.category),
        "annual_revenue": enquiry.annual_revenue,
        "employee_count": enquiry.employee_count,
        "aadhaar_number": enquiry.aadhaar_number,
        "pan_number": enquiry.pan_number,

        # Loan documents
        "need_loan": enquiry.need_loan,
        "aadhaar_file": enquiry.aadhaar_file,
        "electricity_bill_file": enquiry.electricity_bill_file,
        "bank_statement_file": enquiry.bank_statement_file,
        "pan_file": enquiry.pan_file,
        "project_proposal_file": enquiry.project_proposal_file,

        # Location
        "project_location": enquiry.project_location,
        "state": enquiry.state,
        "district": enquiry.district,
        "pincode": enquiry.pincode,

        # Assignment
        "assigned_to": uuid_str(enquiry.assigned_to),
        "assigned_team": enquiry.assigned_team,

        # Duplicate tracking
        "is_duplicate": enquiry.is_duplicate,
        "duplicate_of": uuid_str(enquiry.duplicate_of),

        # Remarks (JSON column, append-only)
        "remarks": [_remark_to_json(r) for r in enquiry.remarks],

        # Call tracking
        "call_status": enquiry.call_status.value,
        "last_called_at": optional_iso(enquiry.last_called_at, name="last_called_at"),
        "next_follow_up": optional_iso(enquiry.next_follow_up, name="next_follow_up"),

        # Timestamps
        "created_by": uuid_str(enquiry.created_by),
        "created_at": to_iso_utc(enquiry.created_at, name="created_at"),
        "updated_at": optional_iso(enquiry.updated_at, name="updated_at"),
        "closed_at": optional_iso(enquiry.closed_at, name="closed_at"),
    }


def row_to_enquiry(row: Mapping[str, Any]) -> Enquiry:
    """Convert a Supabase row into a domain Enquiry."""

    def enum_or_none(enum_cls: Any, key: str) -> Any:
        value = row.get(key)
        return enum_cls(value) if value else None

    return Enquiry(
        id=UUID(str(row["id"])),
        enquiry_code=str(row["enquiry_code"]),
        name=str(row["name"]),
        mobile=str(row["mobile"]),
        email=row.get("email"),
        company_name=row.get("company_name"),
        type_of_lead=TypeOfLead(row["type_of_lead"]),
        source_type=SourceType(row["source_type"]),
        enquiry_profile=EnquiryProfile(row.get("enquiry_profile") or EnquiryProfile.UNKNOWN.value),
        channel_type=ChannelType(row.get("channel_type") or ChannelType.MANUAL.value),
        status=EnquiryStatus(row["status"]),
        stage=EnquiryStage(row["stage"]),
        priority=Priority(row.get("priority") or Priority.MEDIUM.value),
        response_due=optional_datetime(row.get("response_due")),
        resolution_due=optional_datetime(row.get("resolution_due")),
        business_model=enum_or_none(BusinessModel, "business_model"),
        pv_capacity_kw=row.get("pv_capacity_kw"),
        category=enum_or_none(Category, "category"),
        annual_revenue=row.get("annual_revenue"),
        employee_count=row.get("employee_count"),
        aadhaar_number=row.get("aadhaar_number"),
        pan_number=row.get("pan_number"),
        need_loan=bool(row.get("need_loan", False)),
        aadhaar_file=row.get("aadhaar_file"),
        electricity_bill_file=row.get("electricity_bill_file"),
        bank_statement_file=row.get("bank_statement_file"),
        pan_file=row.get("pan_file"),
        project_proposal_file=row.get("project_proposal_file"),
        project_location=row.get("project_location"),
        state=row.get("state"),
        district=row.get("district"),
        pincode=row.get("pincode"),
        assigned_to=optional_uuid(row.get("assigned_to")),
        assigned_team=row.get("assigned_team"),
        is_duplicate=bool(row.get("is_duplicate", False)),
        duplicate_of=optional_uuid(row.get("duplicate_of")),
        remarks=tuple(_remark_from_json(r) for r in (row.get("remarks") or [])),
        call_status=CallStatus(row.get("call_status") or CallStatus.NOT_CALLED.value),
        last_called_at=optional_datetime(row.get("last_called_at")),
        next_follow_up=optional_datetime(row.get("next_follow_up")),
        created_by=optional_uuid(row.get("created_by")),
        created_at=parse_utc_datetime(row["created_at"]),
        updated_at=optional_datetime(row.get("updated_at")),
        closed_at=optional_datetime(row.get("closed_at")),
    )


class EnquiryRepository:
    """Supabase-backed persistence for enquiries."""

    def __init__(self, client: Any):
        self._client = client

    def _table(self) -> Any:
        return self._client.table(_ENQUIRIES_TABLE)

    def _apply_filters(self, query: Any, filters: EnquiryFilters) -> Any:
        if filters.statuses is not None:
            query = query.in_("status", [s.value for s in filters.statuses])
        if filters.exclude_statuses:
            values = ",".join(f'"{s.value}"' for s in filters.exclude_statuses)
            query = query.not_.in_("status", f"({values})")
        if filters.stage is not None:
            query = query.eq("stage", filters.stage.value)
        if filters.source_type is not None:
            query = query.eq("source_type", filters.source_type.value)
        if filters.priority is not None:
            query = query.eq("priority", filters.priority.value)
        if filters.type_of_lead is not None:
            query = query.eq("type_of_lead", filters.type_of_lead.value)
        if filters.assigned_to is not None:
            query = query.eq("assigned_to", str(filters.assigned_to))
        if filters.unassigned_only:
            query = query.is_("assigned_to", "null")
        if filters.queue_assignees is not None:
            clauses = ["assigned_to.is.null"]
            if filters.queue_assignees:
                ids = ",".join(str(u) for u in filters.queue_assignees)
                clauses.append(f"assigned_to.in.({ids})")
            query = query.or_(",".join(clauses))
        if filters.created_from is not None:
            query = query.gte("created_at", to_iso_utc(filters.created_from, name="created_from"))
        if filters.created_to is not None:
            query = query.lte("created_at", to_iso_utc(filters.created_to, name="created_to"))
        return query

    def insert(self, enquiry: Enquiry) -> Enquiry:
        """
        Insert an Enquiry.

        Raises:
        - RuntimeError if Supabase returns an error response.
        """

        response = self._table().insert(enquiry_to_row(enquiry)).execute()
        raise_on_error(response, "insert enquiry")
        return enquiry

    def insert_many(self, enquiries: Sequence[Enquiry]) -> List[Enquiry]:
        """
        Bulk insert in a single request.

        The whole batch is one statement: if any row is rejected by the
        database, nothing is inserted.
        """

        if not enquiries:
            return []
        payloads = [enquiry_to_row(e) for e in enquiries]
        response = self._table().insert(payloads).execute()
        raise_on_error(response, f"bulk insert {len(enquiries)} enquiries")
        return list(enquiries)

    def update(self, enquiry: Enquiry) -> Enquiry:
        payload = enquiry_to_row(enquiry)
        payload.pop("id")
        payload.pop("created_at")
        response = self._table().update(payload).eq("id", str(enquiry.id)).execute()
        raise_on_error(response, "update enquiry")
        return enquiry

    def delete(self, enquiry_id: UUID) -> bool:
        response = self._table().delete().eq("id", str(enquiry_id)).execute()
        return bool(response_rows(response, "delete enquiry"))

    def get_by_id(self, enquiry_id: UUID) -> Optional[Enquiry]:
        response = self._table().select("*").eq("id", str(enquiry_id)).limit(1).execute()
        rows = response_rows(response, "fetch enquiry")
        return row_to_enquiry(rows[0]) if rows else None

    def get_by_code(self, code: str) -> Optional[Enquiry]:
        response = self._table().select("*").eq("enquiry_code", code).limit(1).execute()
        rows = response_rows(response, "fetch enquiry")
        return row_to_enquiry(rows[0]) if rows else None

    def get_many(self, enquiry_ids: Sequence[UUID]) -> List[Enquiry]:
        if not enquiry_ids:
            return []
        response = self._table().select("*").in_("id", [str(i) for i in enquiry_ids]).execute()
        return [row_to_enquiry(row) for row in response_rows(response, "fetch enquiries")]

    def find_recent_by_contact(
        self,
        since: datetime,
        mobile: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[Enquiry]:
        """Oldest enquiry created at or after `since` with the same mobile (and email, if given)."""

        query = self._table().select("*").gte("created_at", to_iso_utc(since, name="since"))
        if mobile:
            query = query.eq("mobile", mobile)
        if email:
            query = query.eq("email", email)
        response = query.order("created_at").limit(1).execute()
        rows = response_rows(response, "look up duplicate enquiry")
        return row_to_enquiry(rows[0]) if rows else None

    def last_code_with_prefix(self, prefix: str) -> Optional[str]:
        response = (
            self._table()
            .select("enquiry_code")
            .like("enquiry_code", f"{prefix}-%")
            .order("enquiry_code", desc=True)
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "read last enquiry code")
        return rows[0]["enquiry_code"] if rows else None

    def list(self, filters: EnquiryFilters, page: int, limit: int) -> Page[Enquiry]:
        """Filtered page of enquiries, newest first."""

        offset = (page - 1) * limit
        query = self._apply_filters(self._table().select("*", count="exact"), filters)
        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        rows = response_rows(response, "list enquiries")
        total = response_count(response, "list enquiries")
        return Page(items=[row_to_enquiry(r) for r in rows], page=page, limit=limit, total=total)

    def list_all(self, filters: EnquiryFilters) -> List[Enquiry]:
        query = self._apply_filters(self._table().select("*"), filters)
        response = query.order("created_at", desc=True).execute()
        return [row_to_enquiry(r) for r in response_rows(response, "list enquiries")]

    def count_assigned(self, user_id: UUID, statuses: Sequence[EnquiryStatus]) -> int:
        """Number of enquiries assigned to `user_id` whose status is one of `statuses`."""

        response = (
            self._table()
            .select("id", count="exact")
            .eq("assigned_to", str(user_id))
            .in_("status", [s.value for s in statuses])
            .execute()
        )
        return response_count(response, "count assigned enquiries")

    def count_by(self, column: str, filters: Optional[EnquiryFilters] = None) -> Dict[Any, int]:
        """Group-and-count on one column."""

        if column not in GROUPABLE_COLUMNS:
            raise ValueError(f"Cannot group enquiries by {column!r}")
        query = self._table().select(column)
        if filters is not None:
            query = self._apply_filters(query, filters)
        rows = response_rows(query.execute(), f"group enquiries by {column}")
        return dict(Counter(row.get(column) for row in rows))

    def distinct_values(self, column: str) -> List[Any]:
        return [value for value in self.count_by(column) if value is not None]


__all__ = [
    "EnquiryFilters",
    "EnquiryRepository",
    "GROUPABLE_COLUMNS",
    "enquiry_to_row",
    "row_to_enquiry",
]
