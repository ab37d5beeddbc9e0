"""
Enquiry service: capture, lifecycle transitions and queries.

Handles:
- Creation with duplicate detection, SLA deadlines and auto-assignment
- Updates (profile identification runs before the status transition)
- Narrow operations: status, priority, remarks, call logging, delete
- Bulk status updates and all-or-nothing bulk import
- Listing, telecaller queue, filter options and CSV export

Notifications and audit entries are queued on `PostCommitHooks` and run only
after the enquiry has been persisted.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from domain.codes import ENQUIRY_PREFIX, day_prefix, next_code
from domain.enquiry import (
    BusinessModel,
    CallStatus,
    Category,
    ChannelType,
    Enquiry,
    EnquiryProfile,
    EnquiryStatus,
    Priority,
    Remark,
    SourceType,
    TypeOfLead,
)
from domain.errors import ImportAbortedError, NotFoundError, ValidationError
from domain.lifecycle import (
    CLOSING_STATUSES,
    STATUS_STAGE,
    apply_priority_change,
    apply_profile_identification,
    apply_status_change,
    initial_lifecycle,
    mark_duplicate,
    profile_identified,
)
from domain.sla import SlaConfig, compute_due_dates
from domain.user import CurrentUser, Role
from domain.validation import enquiry_field_errors, require_one_of
from repositories.enquiry_repository import EnquiryFilters
from repositories.pagination import Page, clamp_page
from services.assignment_service import AssignmentService, BulkResult
from services.context import ServiceContext
from services.csv_export_service import generate_enquiries_csv
from services.side_effects import PostCommitHooks

logger = logging.getLogger(__name__)

_ENUM_FIELDS: Mapping[str, type] = {
    "type_of_lead": TypeOfLead,
    "source_type": SourceType,
    "enquiry_profile": EnquiryProfile,
    "channel_type": ChannelType,
    "status": EnquiryStatus,
    "priority": Priority,
    "business_model": BusinessModel,
    "category": Category,
}

_FLOAT_FIELDS = ("pv_capacity_kw", "annual_revenue")
_INT_FIELDS = ("employee_count",)

_TEXT_FIELDS = (
    "name",
    "mobile",
    "email",
    "company_name",
    "aadhaar_number",
    "pan_number",
    "aadhaar_file",
    "electricity_bill_file",
    "bank_statement_file",
    "pan_file",
    "project_proposal_file",
    "project_location",
    "state",
    "district",
    "pincode",
)

# Fields a client may set on create/update. Stage, assignment and closure are
# owned by the lifecycle and assignment engine.
EDITABLE_FIELDS = frozenset(_ENUM_FIELDS) | frozenset(_FLOAT_FIELDS) | frozenset(_INT_FIELDS) | frozenset(
    _TEXT_FIELDS
) | {"need_loan"}

# Enum fields whose blank value means "use the default".
_DEFAULTED_FIELDS = ("enquiry_profile", "channel_type", "priority", "status")

_TRUE_STRINGS = {"true", "yes", "y", "1"}


def normalise_input(body: Mapping[str, Any]) -> Dict[str, Any]:
    """Strip strings and turn textual booleans into bools; drop unknown keys."""

    values: Dict[str, Any] = {}
    for key, raw in body.items():
        if key not in EDITABLE_FIELDS:
            continue
        if isinstance(raw, str):
            raw = raw.strip()
        if key == "need_loan" and not isinstance(raw, bool):
            raw = str(raw).lower() in _TRUE_STRINGS if raw not in (None, "") else False
        values[key] = raw
    return values


def _coerce(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Typed field values for an already validated input mapping."""

    fields: Dict[str, Any] = {}
    for key, raw in values.items():
        blank = raw is None or raw == ""
        if key in _ENUM_FIELDS:
            if blank:
                if key in _DEFAULTED_FIELDS:
                    continue
                fields[key] = None
            else:
                fields[key] = _ENUM_FIELDS[key](raw.value if isinstance(raw, Enum) else raw)
        elif key in _FLOAT_FIELDS:
            fields[key] = None if blank else float(raw)
        elif key in _INT_FIELDS:
            fields[key] = None if blank else int(float(raw))
        elif key == "need_loan":
            fields[key] = bool(raw)
        else:
            fields[key] = None if blank else str(raw)
    return fields


def _as_fields(enquiry: Enquiry) -> Dict[str, Any]:
    return {name: getattr(enquiry, name) for name in EDITABLE_FIELDS}


def _jsonable(values: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, (UUID, datetime)):
            value = str(value)
        out[key] = value
    return out


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


class EnquiryService:
    def __init__(self, ctx: ServiceContext, assignment: Optional[AssignmentService] = None):
        self._ctx = ctx
        self._assignment = assignment or AssignmentService(ctx)

    def now(self) -> datetime:
        return self._ctx.clock()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_enquiry(self, identifier: str | UUID) -> Enquiry:
        """Find by UUID or by `ENQ-...` code."""

        enquiry: Optional[Enquiry] = None
        if isinstance(identifier, UUID):
            enquiry = self._ctx.enquiries.get_by_id(identifier)
        else:
            as_uuid = _parse_uuid(identifier)
            if as_uuid is not None:
                enquiry = self._ctx.enquiries.get_by_id(as_uuid)
            if enquiry is None:
                enquiry = self._ctx.enquiries.get_by_code(str(identifier))
        if enquiry is None:
            raise NotFoundError("Enquiry", identifier)
        return enquiry

    def list_enquiries(
        self,
        actor: CurrentUser,
        filters: Optional[EnquiryFilters] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page[Enquiry]:
        """Newest first. Telecallers only ever see enquiries assigned to them."""

        filters = filters or EnquiryFilters()
        if actor.is_telecaller:
            filters = replace(filters, assigned_to=actor.id, unassigned_only=False)
        page, limit = clamp_page(page, limit)
        return self._ctx.enquiries.list(filters, page, limit)

    def telecaller_queue(self, page: int = 1, limit: int = 10) -> Page[Enquiry]:
        """Open enquiries that are unassigned or sit with a telecaller."""

        telecallers = self._ctx.users.ids_with_role(Role.TELECALLER.value)
        filters = EnquiryFilters(
            queue_assignees=telecallers,
            exclude_statuses=[EnquiryStatus.CONVERTED, EnquiryStatus.REJECTED],
        )
        page, limit = clamp_page(page, limit)
        return self._ctx.enquiries.list(filters, page, limit)

    def find_duplicate(
        self,
        mobile: Optional[str] = None,
        email: Optional[str] = None,
        as_of: Optional[datetime] = None,
    ) -> Optional[Enquiry]:
        now = as_of or self._ctx.clock()
        return self._ctx.enquiries.find_recent_by_contact(
            since=now - self._ctx.duplicate_window,
            mobile=mobile or None,
            email=email or None,
        )

    def check_duplicate(self, mobile: Optional[str] = None, email: Optional[str] = None) -> Optional[Enquiry]:
        if not mobile and not email:
            raise ValidationError(["Please provide mobile or email to check for duplicates"])
        return self.find_duplicate(mobile=mobile, email=email)

    def filter_options(self) -> Dict[str, Any]:
        """Distinct values for the list filters. Statuses are sorted with Unknown last."""

        repo = self._ctx.enquiries
        statuses = sorted(s for s in repo.distinct_values("status") if s != EnquiryStatus.UNKNOWN.value)
        if EnquiryStatus.UNKNOWN.value in repo.distinct_values("status"):
            statuses.append(EnquiryStatus.UNKNOWN.value)

        assigned_ids = [UUID(str(v)) for v in repo.distinct_values("assigned_to")]
        users = self._ctx.users.get_many(assigned_ids)
        return {
            "statuses": statuses,
            "sources": sorted(repo.distinct_values("source_type")),
            "priorities": sorted(repo.distinct_values("priority")),
            "users": [{"id": str(u.user_id), "name": u.name} for u in users],
        }

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _build(
        self,
        values: Mapping[str, Any],
        actor_id: Optional[UUID],
        now: datetime,
        code: str,
        sla: SlaConfig,
        channel: Optional[ChannelType] = None,
    ) -> Enquiry:
        fields = _coerce(values)
        profile = fields.pop("enquiry_profile", None) or EnquiryProfile.UNKNOWN
        status, stage = initial_lifecycle(profile)
        explicit_status = fields.pop("status", None)
        if explicit_status is not None:
            status = explicit_status
            stage = STATUS_STAGE.get(status, stage)
        priority = fields.pop("priority", None) or Priority.MEDIUM
        if channel is not None:
            fields["channel_type"] = channel
        due = compute_due_dates(priority, now, sla)

        return Enquiry(
            id=uuid4(),
            enquiry_code=code,
            created_at=now,
            created_by=actor_id,
            enquiry_profile=profile,
            status=status,
            stage=stage,
            priority=priority,
            response_due=due.response_due,
            resolution_due=due.resolution_due,
            closed_at=now if status in CLOSING_STATUSES else None,
            **fields,
        )

    def _next_code(self, now: datetime, last: Optional[str] = None) -> str:
        if last is None:
            last = self._ctx.enquiries.last_code_with_prefix(day_prefix(ENQUIRY_PREFIX, now))
        return next_code(ENQUIRY_PREFIX, now, last)

    def create_enquiry(self, body: Mapping[str, Any], actor: CurrentUser, sla: SlaConfig) -> Enquiry:
        values = normalise_input(body)
        errors = enquiry_field_errors(values)
        if errors:
            raise ValidationError(errors)

        now = self._ctx.clock()
        enquiry = self._build(values, actor.id, now, self._next_code(now), sla)

        original = self.find_duplicate(mobile=enquiry.mobile, as_of=now)
        if original is not None:
            enquiry = mark_duplicate(enquiry, original.id)
            logger.info(
                "Duplicate enquiry captured",
                extra={"enquiry_code": enquiry.enquiry_code, "duplicate_of": str(original.id)},
            )

        self._ctx.enquiries.insert(enquiry)

        hooks = PostCommitHooks()
        if enquiry.profile_known and not enquiry.is_duplicate:
            enquiry = self._assignment.auto_assign(enquiry, hooks).enquiry

        hooks.add(
            "audit_create",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            str(enquiry.id),
            "create",
            _jsonable(values),
            {"enquiry_code": enquiry.enquiry_code},
        )
        hooks.run()
        logger.info(
            "Enquiry created",
            extra={
                "enquiry_code": enquiry.enquiry_code,
                "status": enquiry.status.value,
                "stage": enquiry.stage.value,
            },
        )
        return enquiry

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_enquiry(
        self,
        enquiry_id: UUID,
        body: Mapping[str, Any],
        actor: CurrentUser,
        sla: SlaConfig,
    ) -> Enquiry:
        """
        Apply a partial update.

        Order: plain fields and priority (SLA recompute), then profile
        identification with auto-assignment, then the status transition.
        """

        enquiry = self.get_enquiry(enquiry_id)
        values = normalise_input(body)
        errors = enquiry_field_errors({**_as_fields(enquiry), **values})
        if errors:
            raise ValidationError(errors)

        changes = _coerce(values)
        new_status: Optional[EnquiryStatus] = changes.pop("status", None)
        new_profile: Optional[EnquiryProfile] = changes.pop("enquiry_profile", None)
        new_priority: Optional[Priority] = changes.pop("priority", None)

        now = self._ctx.clock()
        updated = replace(enquiry, updated_at=now, **changes)
        if new_priority is not None and new_priority != enquiry.priority:
            updated = apply_priority_change(updated, new_priority, sla)

        hooks = PostCommitHooks()
        if profile_identified(enquiry.enquiry_profile, new_profile):
            updated = apply_profile_identification(updated, new_profile, now)
            self._ctx.enquiries.update(updated)
            updated = self._assignment.auto_assign(updated, hooks).enquiry
        elif new_profile is not None:
            updated = replace(updated, enquiry_profile=new_profile)

        if new_status is not None and new_status != enquiry.status:
            updated = apply_status_change(updated, new_status, actor.id, now, old_status=enquiry.status)

        self._ctx.enquiries.update(updated)
        hooks.add(
            "audit_update",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            str(enquiry.id),
            "update",
            _jsonable(values),
        )
        hooks.run()
        return updated

    def update_status(self, enquiry_id: UUID, status: Any, actor: CurrentUser) -> Enquiry:
        errors = require_one_of(status, EnquiryStatus, "Status")
        if errors:
            raise ValidationError(errors)
        new_status = EnquiryStatus(status.value if isinstance(status, Enum) else status)

        enquiry = self.get_enquiry(enquiry_id)
        updated = apply_status_change(enquiry, new_status, actor.id, self._ctx.clock())
        if updated is enquiry:
            return enquiry

        self._ctx.enquiries.update(updated)
        hooks = PostCommitHooks()
        hooks.add(
            "audit_status",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            str(enquiry.id),
            "status_change",
            {"status": {"from": enquiry.status.value, "to": new_status.value}},
        )
        hooks.run()
        logger.info(
            "Enquiry status changed",
            extra={
                "enquiry_code": enquiry.enquiry_code,
                "from_status": enquiry.status.value,
                "to_status": new_status.value,
            },
        )
        return updated

    def update_priority(self, enquiry_id: UUID, priority: Any, actor: CurrentUser, sla: SlaConfig) -> Enquiry:
        errors = require_one_of(priority, Priority, "Priority")
        if errors:
            raise ValidationError(errors)
        new_priority = Priority(priority.value if isinstance(priority, Enum) else priority)

        enquiry = self.get_enquiry(enquiry_id)
        updated = replace(apply_priority_change(enquiry, new_priority, sla), updated_at=self._ctx.clock())
        self._ctx.enquiries.update(updated)

        hooks = PostCommitHooks()
        hooks.add(
            "audit_priority",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            str(enquiry.id),
            "priority_change",
            {"priority": {"from": enquiry.priority.value, "to": new_priority.value}},
        )
        hooks.run()
        return updated

    def add_remark(self, identifier: str | UUID, text: Optional[str], actor: CurrentUser) -> Remark:
        if not text or not text.strip():
            raise ValidationError(["Please add a remark text"])
        enquiry = self.get_enquiry(identifier)
        now = self._ctx.clock()
        updated = replace(enquiry.with_remark(text.strip(), actor.id, now), updated_at=now)
        self._ctx.enquiries.update(updated)

        remark = updated.remarks[-1]
        hooks = PostCommitHooks()
        hooks.add(
            "audit_remark",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            str(enquiry.id),
            "remark_added",
            {"text": remark.text},
        )
        hooks.run()
        return remark

    def get_remarks(self, identifier: str | UUID) -> Tuple[Remark, ...]:
        return self.get_enquiry(identifier).remarks

    def log_call(
        self,
        enquiry_id: UUID,
        call_status: Any,
        actor: CurrentUser,
        next_follow_up: Optional[datetime] = None,
    ) -> Enquiry:
        errors = require_one_of(call_status, CallStatus, "Call status")
        if errors:
            raise ValidationError(errors)
        enquiry = self.get_enquiry(enquiry_id)
        now = self._ctx.clock()
        updated = replace(
            enquiry,
            call_status=CallStatus(call_status.value if isinstance(call_status, Enum) else call_status),
            last_called_at=now,
            next_follow_up=next_follow_up if next_follow_up is not None else enquiry.next_follow_up,
            updated_at=now,
        )
        self._ctx.enquiries.update(updated)

        hooks = PostCommitHooks()
        hooks.add(
            "audit_call",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            str(enquiry.id),
            "call_logged",
            {"call_status": updated.call_status.value},
        )
        hooks.run()
        return updated

    def delete_enquiry(self, enquiry_id: UUID, actor: CurrentUser) -> None:
        """Remove the enquiry. Its assignment history is kept."""

        enquiry = self.get_enquiry(enquiry_id)
        self._ctx.enquiries.delete(enquiry.id)
        hooks = PostCommitHooks()
        hooks.add(
            "audit_delete",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            str(enquiry.id),
            "delete",
            {},
            {"enquiry_code": enquiry.enquiry_code},
        )
        hooks.run()
        logger.info("Enquiry deleted", extra={"enquiry_code": enquiry.enquiry_code})

    # ------------------------------------------------------------------
    # Assignment entry points
    # ------------------------------------------------------------------

    def assign_enquiry(
        self,
        enquiry_id: UUID,
        user_id: Optional[UUID],
        actor: CurrentUser,
        **options: Any,
    ) -> Enquiry:
        hooks = PostCommitHooks()
        updated = self._assignment.assign(enquiry_id, user_id, actor.id, hooks, **options)
        hooks.add(
            "audit_assign",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            str(enquiry_id),
            "assign",
            {"assigned_to": str(user_id)},
        )
        hooks.run()
        return updated

    def bulk_assign(self, enquiry_ids: Sequence[UUID], user_id: Optional[UUID], actor: CurrentUser) -> BulkResult:
        hooks = PostCommitHooks()
        result = self._assignment.bulk_assign(enquiry_ids, user_id, actor.id, hooks)
        hooks.add(
            "audit_bulk_assign",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            "bulk",
            "bulk_assign",
            {"assigned_to": str(user_id), "ids": [str(i) for i in enquiry_ids]},
            {"matched": result.matched, "modified": result.modified},
        )
        hooks.run()
        return result

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def bulk_update_status(self, enquiry_ids: Sequence[UUID], status: Any, actor: CurrentUser) -> BulkResult:
        """
        Move each listed enquiry to `status`, one document at a time.

        Enquiries already in that status are matched but not modified.
        """

        if not enquiry_ids:
            raise ValidationError(["Please provide an array of enquiry IDs"])
        errors = require_one_of(status, EnquiryStatus, "Status")
        if errors:
            raise ValidationError(errors)
        new_status = EnquiryStatus(status.value if isinstance(status, Enum) else status)

        now = self._ctx.clock()
        enquiries = self._ctx.enquiries.get_many(list(enquiry_ids))
        modified = 0
        for enquiry in enquiries:
            updated = apply_status_change(enquiry, new_status, actor.id, now)
            if updated is enquiry:
                continue
            self._ctx.enquiries.update(updated)
            modified += 1

        hooks = PostCommitHooks()
        hooks.add(
            "audit_bulk_status",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            "bulk",
            "bulk_status_change",
            {"status": new_status.value, "ids": [str(i) for i in enquiry_ids]},
            {"matched": len(enquiries), "modified": modified},
        )
        hooks.run()
        return BulkResult(matched=len(enquiries), modified=modified)

    def import_enquiries(
        self,
        rows: Sequence[Mapping[str, Any]],
        actor: CurrentUser,
        sla: SlaConfig,
        first_row_number: int = 2,
    ) -> List[Enquiry]:
        """
        Validate every row, then insert all of them in one statement.

        Any invalid row aborts the import with nothing written. Row numbers
        in errors start at `first_row_number` (2 = first data row after a
        header line).
        """

        if not rows:
            raise ValidationError(["No data found in the uploaded file"])

        row_errors: List[Dict[str, Any]] = []
        prepared: List[Dict[str, Any]] = []
        for offset, row in enumerate(rows):
            values = normalise_input(row)
            errors = enquiry_field_errors(values)
            if errors:
                row_errors.append({"row": first_row_number + offset, "errors": errors})
            prepared.append(values)

        if row_errors:
            logger.warning(
                "Enquiry import rejected",
                extra={"rows": len(rows), "rejected_rows": len(row_errors)},
            )
            raise ImportAbortedError(row_errors)

        now = self._ctx.clock()
        code: Optional[str] = None
        enquiries: List[Enquiry] = []
        for values in prepared:
            code = self._next_code(now, last=code)
            enquiries.append(self._build(values, actor.id, now, code, sla, channel=ChannelType.BULK_UPLOAD))

        inserted = self._ctx.enquiries.insert_many(enquiries)

        hooks = PostCommitHooks()
        hooks.add(
            "audit_import",
            self._ctx.audit.record,
            actor.id,
            "enquiry",
            "bulk",
            "import",
            {},
            {"count": len(inserted)},
        )
        hooks.run()
        logger.info("Enquiries imported", extra={"count": len(inserted)})
        return inserted

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_enquiries(self, actor: CurrentUser, filters: Optional[EnquiryFilters] = None) -> str:
        filters = filters or EnquiryFilters()
        if actor.is_telecaller:
            filters = replace(filters, assigned_to=actor.id, unassigned_only=False)
        enquiries = self._ctx.enquiries.list_all(filters)
        assignee_ids = sorted({e.assigned_to for e in enquiries if e.assigned_to is not None}, key=str)
        names = {u.user_id: u.name for u in self._ctx.users.get_many(assignee_ids)}
        return generate_enquiries_csv(enquiries, names)


__all__ = ["EDITABLE_FIELDS", "EnquiryService", "normalise_input"]
