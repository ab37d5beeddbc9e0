"""
Tests for `services/enquiry_service.py`.

Covers contract rules:
- Creation: codes, default lifecycle, SLA deadlines, duplicate detection, auto-assignment.
- Updates: profile identification runs auto-assignment before the status change.
- Narrow operations: status, priority, remarks, calls, delete.
- Bulk status / assign counts, all-or-nothing import, listing and export.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from domain.assignment_rule import AssignmentRule, PoolMember, RuleType
from domain.enquiry import CallStatus, ChannelType, EnquiryProfile, EnquiryStage, EnquiryStatus, Priority
from domain.errors import ImportAbortedError, NotFoundError, ValidationError
from domain.sla import DEFAULT_SLA_CONFIG
from repositories.enquiry_repository import EnquiryFilters
from services.enquiry_service import EnquiryService
from tests.fakes import ALICE_ID, BOB_ID, NOW, audit_entries, enquiry_body, make_enquiry

SLA = DEFAULT_SLA_CONFIG


def round_robin_to(ctx, *user_ids) -> None:
    ctx.rules.insert(
        AssignmentRule(
            rule_id="RULE-20240110-0001",
            name="Everyone",
            rule_type=RuleType.ROUND_ROBIN,
            created_at=NOW - timedelta(days=5),
            assignment_to=tuple(PoolMember(u) for u in user_ids),
        )
    )


@pytest.fixture
def service(ctx):
    return EnquiryService(ctx)


class TestCreate:
    def test_defaults_code_and_deadlines(self, ctx, service, admin) -> None:
        enquiry = service.create_enquiry(enquiry_body(), admin, SLA)

        assert enquiry.enquiry_code == "ENQ-20240115-0001"
        assert enquiry.status == EnquiryStatus.NEW
        assert enquiry.priority == Priority.MEDIUM
        assert enquiry.response_due == NOW + timedelta(hours=4)
        assert enquiry.resolution_due == NOW + timedelta(hours=48)
        assert enquiry.created_by == admin.id
        assert ctx.enquiries.get_by_id(enquiry.id) is not None

    def test_codes_are_sequential_within_a_day(self, service, admin) -> None:
        first = service.create_enquiry(enquiry_body(mobile="9000000001"), admin, SLA)
        second = service.create_enquiry(enquiry_body(mobile="9000000002"), admin, SLA)
        assert (first.enquiry_code, second.enquiry_code) == ("ENQ-20240115-0001", "ENQ-20240115-0002")

    def test_unknown_profile_goes_to_telecaller_queue(self, ctx, service, admin) -> None:
        round_robin_to(ctx, BOB_ID)
        enquiry = service.create_enquiry(enquiry_body(enquiry_profile=None), admin, SLA)
        assert enquiry.status == EnquiryStatus.UNKNOWN
        assert enquiry.stage == EnquiryStage.TELECALLER_QUEUE
        assert enquiry.assigned_to is None

    def test_known_profile_is_auto_assigned(self, ctx, service, admin) -> None:
        round_robin_to(ctx, BOB_ID)
        enquiry = service.create_enquiry(enquiry_body(), admin, SLA)
        assert enquiry.assigned_to == BOB_ID
        assert enquiry.stage == EnquiryStage.ASSIGNED
        assert len(ctx.assignment_logs.rows) == 1

    def test_no_rule_means_assignment_pending(self, ctx, service, admin) -> None:
        enquiry = service.create_enquiry(enquiry_body(), admin, SLA)
        assert enquiry.stage == EnquiryStage.ASSIGNMENT_PENDING
        assert ctx.enquiries.get_by_id(enquiry.id).stage == EnquiryStage.ASSIGNMENT_PENDING

    def test_duplicate_within_window(self, ctx, service, admin) -> None:
        """A repeat enquiry from the same mobile three days later is flagged."""

        round_robin_to(ctx, BOB_ID)
        original = service.create_enquiry(enquiry_body(), admin, SLA)
        ctx.clock.advance(days=3)

        repeat = service.create_enquiry(enquiry_body(), admin, SLA)

        assert repeat.is_duplicate
        assert repeat.duplicate_of == original.id
        assert repeat.status == EnquiryStatus.DUPLICATE
        assert repeat.stage == EnquiryStage.VALIDATION
        assert repeat.assigned_to is None
        assert len(ctx.assignment_logs.rows) == 1

    def test_outside_window_is_not_duplicate(self, ctx, service, admin) -> None:
        service.create_enquiry(enquiry_body(), admin, SLA)
        ctx.clock.advance(days=8)
        assert not service.create_enquiry(enquiry_body(), admin, SLA).is_duplicate

    def test_invalid_body_lists_all_errors(self, service, admin) -> None:
        with pytest.raises(ValidationError) as exc:
            service.create_enquiry({"name": "", "mobile": "1"}, admin, SLA)
        assert len(exc.value.errors) >= 3

    def test_non_numeric_capacity_on_b2b(self, ctx, service, admin) -> None:
        body = enquiry_body(
            type_of_lead="B2B", business_model="Capex", company_name="Acme", category=None, pv_capacity_kw="n/a"
        )
        with pytest.raises(ValidationError) as exc:
            service.create_enquiry(body, admin, SLA)
        assert exc.value.details == ["PV Capacity (kW) must be a number"]
        assert ctx.enquiries.rows == {}

    def test_audit_entry_after_create(self, ctx, service, admin) -> None:
        enquiry = service.create_enquiry(enquiry_body(), admin, SLA)
        entries = audit_entries(ctx)
        assert [e.action for e in entries] == ["create"]
        assert entries[0].entity_id == str(enquiry.id)


class TestUpdate:
    def _unknown(self, ctx):
        enquiry = make_enquiry(
            enquiry_profile=EnquiryProfile.UNKNOWN,
            status=EnquiryStatus.UNKNOWN,
            stage=EnquiryStage.TELECALLER_QUEUE,
        )
        ctx.enquiries.insert(enquiry)
        return enquiry

    def test_profile_identification_auto_assigns(self, ctx, service, admin) -> None:
        round_robin_to(ctx, BOB_ID)
        enquiry = self._unknown(ctx)

        updated = service.update_enquiry(enquiry.id, {"enquiry_profile": "Product"}, admin, SLA)

        assert updated.enquiry_profile == EnquiryProfile.PRODUCT
        assert updated.status == EnquiryStatus.NEW
        assert updated.stage == EnquiryStage.ASSIGNED
        assert updated.assigned_to == BOB_ID

    def test_profile_then_status_in_one_update(self, ctx, service, admin) -> None:
        round_robin_to(ctx, BOB_ID)
        enquiry = self._unknown(ctx)

        updated = service.update_enquiry(
            enquiry.id, {"enquiry_profile": "Product", "status": "In Progress"}, admin, SLA
        )

        assert updated.assigned_to == BOB_ID
        assert updated.status == EnquiryStatus.IN_PROGRESS
        assert updated.stage == EnquiryStage.ACTION_IN_PROGRESS
        assert [r.text for r in updated.remarks] == ["Status changed from Unknown to In Progress"]

    def test_priority_update_recomputes_from_creation(self, ctx, service, admin) -> None:
        enquiry = make_enquiry(priority=Priority.MEDIUM)
        ctx.enquiries.insert(enquiry)
        ctx.clock.advance(hours=1)

        updated = service.update_enquiry(enquiry.id, {"priority": "HIGH"}, admin, SLA)

        assert updated.response_due == NOW + timedelta(hours=2)

    def test_invalid_merge_is_rejected(self, ctx, service, admin) -> None:
        enquiry = make_enquiry()
        ctx.enquiries.insert(enquiry)
        with pytest.raises(ValidationError):
            service.update_enquiry(enquiry.id, {"type_of_lead": "B2B"}, admin, SLA)


class TestNarrowOperations:
    def test_status_change_adds_one_remark_and_closes(self, ctx, service, admin) -> None:
        enquiry = make_enquiry()
        ctx.enquiries.insert(enquiry)

        updated = service.update_status(enquiry.id, "Converted", admin)

        assert updated.stage == EnquiryStage.CLOSED_CONVERTED
        assert updated.closed_at == NOW
        assert len(updated.remarks) == 1
        assert service.update_status(enquiry.id, "Converted", admin).remarks == updated.remarks

    def test_invalid_status(self, ctx, service, admin) -> None:
        enquiry = make_enquiry()
        ctx.enquiries.insert(enquiry)
        with pytest.raises(ValidationError):
            service.update_status(enquiry.id, "Won", admin)

    def test_update_priority(self, ctx, service, admin) -> None:
        enquiry = make_enquiry()
        ctx.enquiries.insert(enquiry)
        updated = service.update_priority(enquiry.id, "LOW", admin, SLA)
        assert updated.priority == Priority.LOW
        assert updated.resolution_due == NOW + timedelta(hours=72)

    def test_remarks_by_code(self, ctx, service, telecaller) -> None:
        enquiry = make_enquiry(enquiry_code="ENQ-20240115-0042")
        ctx.enquiries.insert(enquiry)

        remark = service.add_remark("ENQ-20240115-0042", "  Called, asked for brochure ", telecaller)

        assert remark.text == "Called, asked for brochure"
        assert remark.added_by == telecaller.id
        assert service.get_remarks(str(enquiry.id)) == (remark,)

    def test_remark_is_audited(self, ctx, service, telecaller) -> None:
        enquiry = make_enquiry()
        ctx.enquiries.insert(enquiry)

        service.add_remark(enquiry.id, " Wants a site visit ", telecaller)

        [entry] = audit_entries(ctx)
        assert (entry.actor, entry.entity_id, entry.action) == (telecaller.id, str(enquiry.id), "remark_added")
        assert entry.changes == {"text": "Wants a site visit"}

    def test_empty_remark(self, ctx, service, admin) -> None:
        with pytest.raises(ValidationError):
            service.add_remark("ENQ-1", "  ", admin)

    def test_log_call(self, ctx, service, telecaller) -> None:
        enquiry = make_enquiry()
        ctx.enquiries.insert(enquiry)
        follow_up = NOW + timedelta(days=2)

        updated = service.log_call(enquiry.id, "Busy", telecaller, next_follow_up=follow_up)

        assert updated.call_status == CallStatus.BUSY
        assert updated.last_called_at == NOW
        assert updated.next_follow_up == follow_up

    def test_delete_keeps_assignment_history(self, ctx, service, admin) -> None:
        round_robin_to(ctx, BOB_ID)
        enquiry = service.create_enquiry(enquiry_body(), admin, SLA)

        service.delete_enquiry(enquiry.id, admin)

        with pytest.raises(NotFoundError):
            service.get_enquiry(enquiry.id)
        assert len(ctx.assignment_logs.history_for_enquiry(enquiry.id)) == 1


class TestBulk:
    def test_bulk_status_counts(self, ctx, service, admin) -> None:
        same = make_enquiry(status=EnquiryStatus.QUOTED, stage=EnquiryStage.QUOTED)
        other = make_enquiry()
        ctx.enquiries.insert(same)
        ctx.enquiries.insert(other)

        result = service.bulk_update_status([same.id, other.id], "Quoted", admin)

        assert (result.matched, result.modified) == (2, 1)
        assert len(ctx.enquiries.get_by_id(other.id).remarks) == 1
        assert ctx.enquiries.get_by_id(same.id).remarks == ()

    def test_bulk_assign(self, ctx, service, admin) -> None:
        enquiries = [make_enquiry(), make_enquiry()]
        for e in enquiries:
            ctx.enquiries.insert(e)
        result = service.bulk_assign([e.id for e in enquiries], ALICE_ID, admin)
        assert result.modified == 2
        assert len(ctx.assignment_logs.rows) == 2


class TestImport:
    def test_import_all_rows(self, ctx, service, admin) -> None:
        rows = [enquiry_body(mobile="9000000001"), enquiry_body(mobile="9000000002", priority="HIGH")]

        created = service.import_enquiries(rows, admin, SLA)

        assert [e.enquiry_code for e in created] == ["ENQ-20240115-0001", "ENQ-20240115-0002"]
        assert all(e.channel_type == ChannelType.BULK_UPLOAD for e in created)
        assert created[1].response_due == NOW + timedelta(hours=2)
        assert ctx.enquiries.insert_many_calls == 1
        assert ctx.assignment_logs.rows == []

    def test_one_bad_row_aborts_everything(self, ctx, service, admin) -> None:
        rows = [enquiry_body(mobile="9000000001"), enquiry_body(mobile="123"), enquiry_body(name="")]

        with pytest.raises(ImportAbortedError) as exc:
            service.import_enquiries(rows, admin, SLA)

        assert [d["row"] for d in exc.value.details] == [3, 4]
        assert ctx.enquiries.rows == {}
        assert ctx.enquiries.insert_many_calls == 0

    def test_non_numeric_revenue_aborts_import(self, ctx, service, admin) -> None:
        rows = [enquiry_body(mobile="9000000001", annual_revenue="ten lakh")]

        with pytest.raises(ImportAbortedError) as exc:
            service.import_enquiries(rows, admin, SLA)

        assert exc.value.details == [{"row": 2, "errors": ["Annual Revenue must be a number"]}]
        assert ctx.enquiries.rows == {}

    def test_empty_import(self, service, admin) -> None:
        with pytest.raises(ValidationError):
            service.import_enquiries([], admin, SLA)


class TestQueries:
    def test_telecaller_sees_only_own_enquiries(self, ctx, service, telecaller) -> None:
        mine = make_enquiry(assigned_to=ALICE_ID)
        ctx.enquiries.insert(mine)
        ctx.enquiries.insert(make_enquiry(assigned_to=BOB_ID))
        ctx.enquiries.insert(make_enquiry())

        page = service.list_enquiries(telecaller, EnquiryFilters(), 1, 10)

        assert [e.id for e in page.items] == [mine.id]

    def test_list_paginates_newest_first(self, ctx, service, admin) -> None:
        for offset in range(3):
            ctx.enquiries.insert(make_enquiry(created_at=NOW + timedelta(minutes=offset)))
        page = service.list_enquiries(admin, EnquiryFilters(), page=1, limit=2)
        assert page.total == 3
        assert page.has_next_page
        assert page.items[0].created_at == NOW + timedelta(minutes=2)

    def test_telecaller_queue(self, ctx, service) -> None:
        ctx.enquiries.insert(make_enquiry(assigned_to=ALICE_ID))
        ctx.enquiries.insert(make_enquiry())
        ctx.enquiries.insert(make_enquiry(assigned_to=BOB_ID))
        ctx.enquiries.insert(make_enquiry(status=EnquiryStatus.CONVERTED))
        assert service.telecaller_queue().total == 2

    def test_check_duplicate(self, ctx, service) -> None:
        ctx.enquiries.insert(make_enquiry(email="asha@example.com"))
        assert service.check_duplicate(email="asha@example.com") is not None
        assert service.check_duplicate(mobile="9999999999") is None
        with pytest.raises(ValidationError):
            service.check_duplicate()

    def test_filter_options_put_unknown_last(self, ctx, service) -> None:
        ctx.enquiries.insert(make_enquiry(status=EnquiryStatus.UNKNOWN))
        ctx.enquiries.insert(make_enquiry(status=EnquiryStatus.QUOTED, assigned_to=BOB_ID))
        ctx.enquiries.insert(make_enquiry(status=EnquiryStatus.NEW))

        options = service.filter_options()

        assert options["statuses"] == ["New", "Quoted", "Unknown"]
        assert options["users"] == [{"id": str(BOB_ID), "name": "Bob"}]

    def test_export_uses_assignee_names(self, ctx, service, admin) -> None:
        ctx.enquiries.insert(make_enquiry(assigned_to=BOB_ID, name="=HYPERLINK(evil)"))
        csv_text = service.export_enquiries(admin)
        assert "Bob" in csv_text
        assert "=HYPERLINK" not in csv_text
