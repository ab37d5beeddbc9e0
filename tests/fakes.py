"""
In-memory stand-ins for the Supabase repositories.

Method names and return shapes mirror the real repositories so services can be
exercised without a database. Filtering reuses the `matches` predicates of the
real filter dataclasses.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from domain.assignment_log import AssignmentLog
from domain.assignment_rule import AssignmentRule
from domain.enquiry import Category, Enquiry, EnquiryProfile, EnquiryStage, EnquiryStatus, SourceType, TypeOfLead
from domain.user import User
from repositories.assignment_log_repository import AssignmentLogFilters
from repositories.enquiry_repository import GROUPABLE_COLUMNS, EnquiryFilters, enquiry_to_row
from repositories.pagination import Page
from services.activity_service import AuditTrail, Notifier
from services.context import ServiceContext


NOW = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

ADMIN_ID = UUID("00000000-0000-0000-0000-0000000000a1")
ALICE_ID = UUID("00000000-0000-0000-0000-000000000001")
BOB_ID = UUID("00000000-0000-0000-0000-000000000002")
CAROL_ID = UUID("00000000-0000-0000-0000-000000000003")


class FakeClock:
    """Settable clock; `advance` moves it forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def _page(items: List[Any], page: int, limit: int) -> Page:
    offset = (page - 1) * limit
    return Page(items=items[offset:offset + limit], page=page, limit=limit, total=len(items))


class InMemoryEnquiryRepository:
    def __init__(self) -> None:
        self.rows: Dict[UUID, Enquiry] = {}
        self.insert_many_calls = 0
        self.updates = 0

    def insert(self, enquiry: Enquiry) -> Enquiry:
        self.rows[enquiry.id] = enquiry
        return enquiry

    def insert_many(self, enquiries: Sequence[Enquiry]) -> List[Enquiry]:
        self.insert_many_calls += 1
        for enquiry in enquiries:
            self.rows[enquiry.id] = enquiry
        return list(enquiries)

    def update(self, enquiry: Enquiry) -> Enquiry:
        self.updates += 1
        self.rows[enquiry.id] = enquiry
        return enquiry

    def delete(self, enquiry_id: UUID) -> bool:
        return self.rows.pop(enquiry_id, None) is not None

    def get_by_id(self, enquiry_id: UUID) -> Optional[Enquiry]:
        return self.rows.get(enquiry_id)

    def get_by_code(self, code: str) -> Optional[Enquiry]:
        return next((e for e in self.rows.values() if e.enquiry_code == code), None)

    def get_many(self, enquiry_ids: Sequence[UUID]) -> List[Enquiry]:
        return [self.rows[i] for i in enquiry_ids if i in self.rows]

    def find_recent_by_contact(
        self,
        since: datetime,
        mobile: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[Enquiry]:
        candidates = [
            e
            for e in self.rows.values()
            if e.created_at >= since
            and (not mobile or e.mobile == mobile)
            and (not email or e.email == email)
        ]
        return min(candidates, key=lambda e: e.created_at) if candidates else None

    def last_code_with_prefix(self, prefix: str) -> Optional[str]:
        codes = [e.enquiry_code for e in self.rows.values() if e.enquiry_code.startswith(f"{prefix}-")]
        return max(codes) if codes else None

    def _filtered(self, filters: EnquiryFilters) -> List[Enquiry]:
        matched = [e for e in self.rows.values() if filters.matches(e)]
        return sorted(matched, key=lambda e: e.created_at, reverse=True)

    def list(self, filters: EnquiryFilters, page: int, limit: int) -> Page[Enquiry]:
        return _page(self._filtered(filters), page, limit)

    def list_all(self, filters: EnquiryFilters) -> List[Enquiry]:
        return self._filtered(filters)

    def count_assigned(self, user_id: UUID, statuses: Sequence[EnquiryStatus]) -> int:
        return sum(1 for e in self.rows.values() if e.assigned_to == user_id and e.status in statuses)

    def count_by(self, column: str, filters: Optional[EnquiryFilters] = None) -> Dict[Any, int]:
        if column not in GROUPABLE_COLUMNS:
            raise ValueError(f"Cannot group enquiries by {column!r}")
        rows = self._filtered(filters or EnquiryFilters())
        return dict(Counter(enquiry_to_row(e).get(column) for e in rows))

    def distinct_values(self, column: str) -> List[Any]:
        return [value for value in self.count_by(column) if value is not None]


class InMemoryRuleRepository:
    def __init__(self, rules: Sequence[AssignmentRule] = ()) -> None:
        self.rows: Dict[str, AssignmentRule] = {r.rule_id: r for r in rules}
        self.fail_reads = False

    def list_active(self) -> List[AssignmentRule]:
        if self.fail_reads:
            raise RuntimeError("Supabase error (fetch active rules): connection reset")
        return sorted((r for r in self.rows.values() if r.is_active), key=AssignmentRule.sort_key)

    def list_all(self) -> List[AssignmentRule]:
        return sorted(self.rows.values(), key=AssignmentRule.sort_key)

    def get(self, rule_id: str) -> Optional[AssignmentRule]:
        return self.rows.get(rule_id)

    def get_by_name(self, name: str) -> Optional[AssignmentRule]:
        return next((r for r in self.rows.values() if r.name == name), None)

    def insert(self, rule: AssignmentRule) -> AssignmentRule:
        self.rows[rule.rule_id] = rule
        return rule

    def update(self, rule: AssignmentRule) -> AssignmentRule:
        self.rows[rule.rule_id] = rule
        return rule

    def delete(self, rule_id: str) -> bool:
        return self.rows.pop(rule_id, None) is not None

    def set_cursor(self, rule_id: str, cursor: int) -> None:
        self.rows[rule_id] = replace(self.rows[rule_id], rr_cursor=cursor)

    def last_code_with_prefix(self, prefix: str) -> Optional[str]:
        codes = [r for r in self.rows if r.startswith(f"{prefix}-")]
        return max(codes) if codes else None


class InMemoryAssignmentLogRepository:
    def __init__(self) -> None:
        self.rows: List[AssignmentLog] = []
        self.fail_inserts = False

    def insert(self, log: AssignmentLog) -> AssignmentLog:
        if self.fail_inserts:
            raise RuntimeError("Supabase error (insert assignment log): timeout")
        self.rows.append(log)
        return log

    def latest_for_enquiry(self, enquiry_id: UUID) -> Optional[AssignmentLog]:
        history = self.history_for_enquiry(enquiry_id)
        return history[0] if history else None

    def set_duration(self, assignment_log_id: str, minutes: int) -> None:
        self.rows = [
            replace(r, assignment_duration=minutes) if r.assignment_log_id == assignment_log_id else r
            for r in self.rows
        ]

    def history_for_enquiry(self, enquiry_id: UUID) -> List[AssignmentLog]:
        matched = [r for r in self.rows if r.enquiry_id == enquiry_id]
        # Stable for equal timestamps: later inserts count as newer.
        return [r for _, r in sorted(enumerate(matched), key=lambda p: (p[1].timestamp, p[0]), reverse=True)]

    def count_for_assignee_since(self, user_id: UUID, since: datetime) -> int:
        return sum(1 for r in self.rows if r.new_assignee.user_id == user_id and r.timestamp >= since)

    def _filtered(self, filters: AssignmentLogFilters) -> List[AssignmentLog]:
        return sorted((r for r in self.rows if filters.matches(r)), key=lambda r: r.timestamp, reverse=True)

    def list(self, filters: AssignmentLogFilters, page: int, limit: int) -> Page[AssignmentLog]:
        return _page(self._filtered(filters), page, limit)

    def list_all(self, filters: AssignmentLogFilters) -> List[AssignmentLog]:
        return self._filtered(filters)

    def last_code_with_prefix(self, prefix: str) -> Optional[str]:
        codes = [r.assignment_log_id for r in self.rows if r.assignment_log_id.startswith(f"{prefix}-")]
        return max(codes) if codes else None


class InMemoryUserRepository:
    def __init__(self, users: Sequence[User] = ()) -> None:
        self.rows: Dict[UUID, User] = {u.user_id: u for u in users}

    def add(self, user: User) -> User:
        self.rows[user.user_id] = user
        return user

    def get(self, user_id: UUID) -> Optional[User]:
        return self.rows.get(user_id)

    def get_many(self, user_ids: Sequence[UUID]) -> List[User]:
        return [self.rows[u] for u in user_ids if u in self.rows]

    def ids_with_role(self, role: str) -> List[UUID]:
        return [u.user_id for u in self.rows.values() if u.role == role]


class RecordingRepository:
    """Collects whatever is inserted; optionally fails every insert."""

    def __init__(self, fail: bool = False) -> None:
        self.items: List[Any] = []
        self.fail = fail

    def insert(self, item: Any) -> None:
        if self.fail:
            raise RuntimeError("downstream unavailable")
        self.items.append(item)


def build_fake_context(
    now: Optional[datetime] = None,
    users: Sequence[User] = (),
    rules: Sequence[AssignmentRule] = (),
) -> ServiceContext:
    clock = FakeClock(now or NOW)
    return ServiceContext(
        enquiries=InMemoryEnquiryRepository(),
        rules=InMemoryRuleRepository(rules),
        assignment_logs=InMemoryAssignmentLogRepository(),
        users=InMemoryUserRepository(users),
        notifier=Notifier(RecordingRepository(), clock),
        audit=AuditTrail(RecordingRepository(), clock),
        clock=clock,
    )


def make_enquiry(**overrides: Any) -> Enquiry:
    """A valid B2C enquiry captured at NOW; override any field."""

    values: Dict[str, Any] = dict(
        id=uuid4(),
        enquiry_code="ENQ-20240115-0001",
        name="Asha Rao",
        mobile="9876543210",
        type_of_lead=TypeOfLead.B2C,
        source_type=SourceType.WEBSITE,
        created_at=NOW,
        enquiry_profile=EnquiryProfile.PROJECT,
        status=EnquiryStatus.NEW,
        stage=EnquiryStage.CAPTURED,
        pv_capacity_kw=5.0,
        category=Category.RESIDENTIAL,
    )
    values.update(overrides)
    return Enquiry(**values)


def enquiry_body(**overrides: Any) -> Dict[str, Any]:
    """A valid create request body (B2C, known profile)."""

    body: Dict[str, Any] = {
        "name": "Asha Rao",
        "mobile": "9876543210",
        "email": "asha@example.com",
        "type_of_lead": "B2C",
        "source_type": "Website",
        "enquiry_profile": "Project",
        "pv_capacity_kw": 5,
        "category": "Residential",
    }
    body.update(overrides)
    return {k: v for k, v in body.items() if v is not None}


def sent_notifications(ctx: ServiceContext) -> List[Any]:
    return ctx.notifier._repository.items


def audit_entries(ctx: ServiceContext) -> List[Any]:
    return ctx.audit._repository.items
