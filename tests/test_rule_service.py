"""
Tests for `services/rule_service.py`.

Covers contract rules:
- Rules get sequential RULE codes and are listed in evaluation order.
- Every problem in a rule definition is reported together.
- Names are unique; activate / deactivate only toggles `is_active`.
"""

from __future__ import annotations

import pytest

from domain.assignment_rule import ConditionOperator, RuleType
from domain.errors import NotFoundError, ValidationError
from services.rule_service import RuleService
from tests.fakes import BOB_ID, CAROL_ID, audit_entries


def rule_body(**overrides):
    body = {
        "name": "Website projects",
        "rule_type": "round-robin",
        "priority": 5,
        "conditions": [{"field": "source_type", "operator": "equals", "value": "Website"}],
        "assignment_to": [{"user_id": str(BOB_ID)}, {"user_id": str(CAROL_ID), "max_daily_assignments": 10}],
    }
    body.update(overrides)
    return body


@pytest.fixture
def service(ctx):
    return RuleService(ctx)


def test_create_rule(ctx, service, admin) -> None:
    rule = service.create_rule(rule_body(), admin)

    assert rule.rule_id == "RULE-20240115-0001"
    assert rule.rule_type == RuleType.ROUND_ROBIN
    assert rule.conditions[0].operator == ConditionOperator.EQUALS
    assert [m.user_id for m in rule.assignment_to] == [BOB_ID, CAROL_ID]
    assert rule.assignment_to[0].weight == 1
    assert rule.assignment_to[1].max_daily_assignments == 10
    assert rule.rr_cursor == 0
    assert [e.action for e in audit_entries(ctx)] == ["create"]


def test_second_rule_gets_next_code(service, admin) -> None:
    service.create_rule(rule_body(), admin)
    assert service.create_rule(rule_body(name="Other"), admin).rule_id == "RULE-20240115-0002"


def test_all_problems_reported_together(service, admin) -> None:
    body = rule_body(
        name="",
        conditions=[
            {"field": "favourite_colour", "operator": "equals", "value": "red"},
            {"field": "status", "operator": "in", "value": "New"},
        ],
        assignment_to=[],
    )
    with pytest.raises(ValidationError) as exc:
        service.create_rule(body, admin)

    errors = exc.value.errors
    assert "Rule name is required" in errors
    assert "Condition 1: unknown field 'favourite_colour'" in errors
    assert "Condition 2: 'in' requires a list value" in errors
    assert "A round-robin rule needs at least one assignee" in errors


def test_unknown_operator_and_rule_type(service, admin) -> None:
    with pytest.raises(ValidationError) as exc:
        service.create_rule(
            rule_body(rule_type="random", conditions=[{"field": "status", "operator": "like", "value": "x"}]),
            admin,
        )
    assert any(e.startswith("Rule type must be one of:") for e in exc.value.errors)
    assert any(e.startswith("Condition 1 operator must be one of:") for e in exc.value.errors)


def test_rule_type_is_required(service, admin) -> None:
    with pytest.raises(ValidationError):
        service.create_rule(rule_body(rule_type=None), admin)


def test_fallback_needs_a_user(service, admin) -> None:
    with pytest.raises(ValidationError) as exc:
        service.create_rule(rule_body(rule_type="fallback", assignment_to=[]), admin)
    assert "A fallback rule needs a fallback user" in exc.value.errors

    rule = service.create_rule(
        rule_body(rule_type="fallback", assignment_to=[], fallback_user_id=str(BOB_ID)), admin
    )
    assert rule.fallback_user_id == BOB_ID


def test_pool_weight_must_be_at_least_one(service, admin) -> None:
    with pytest.raises(ValidationError) as exc:
        service.create_rule(rule_body(assignment_to=[{"user_id": str(BOB_ID), "weight": 0.5}]), admin)
    assert "Assignee 1: weight must be at least 1" in exc.value.errors


def test_duplicate_name_rejected(service, admin) -> None:
    service.create_rule(rule_body(), admin)
    with pytest.raises(ValidationError):
        service.create_rule(rule_body(), admin)


def test_list_in_evaluation_order(ctx, service, admin) -> None:
    low = service.create_rule(rule_body(name="Low", priority=1), admin)
    ctx.clock.advance(minutes=1)
    high = service.create_rule(rule_body(name="High", priority=9), admin)
    ctx.clock.advance(minutes=1)
    tie = service.create_rule(rule_body(name="Tie", priority=1), admin)

    assert [r.rule_id for r in service.list_rules()] == [high.rule_id, low.rule_id, tie.rule_id]


def test_update_keeps_unspecified_fields(ctx, service, admin) -> None:
    rule = service.create_rule(rule_body(), admin)
    ctx.clock.advance(hours=1)

    updated = service.update_rule(rule.rule_id, {"priority": 20}, admin)

    assert updated.priority == 20
    assert updated.conditions == rule.conditions
    assert updated.created_at == rule.created_at
    assert updated.updated_at == ctx.clock()
    assert service.get_rule(rule.rule_id).priority == 20


def test_activate_and_deactivate(service, admin) -> None:
    rule = service.create_rule(rule_body(), admin)
    assert not service.set_active(rule.rule_id, False, admin).is_active
    assert service.set_active(rule.rule_id, True, admin).is_active


def test_delete_and_missing_rule(service, admin) -> None:
    rule = service.create_rule(rule_body(), admin)
    service.delete_rule(rule.rule_id, admin)

    with pytest.raises(NotFoundError):
        service.get_rule(rule.rule_id)
    with pytest.raises(NotFoundError):
        service.delete_rule(rule.rule_id, admin)
