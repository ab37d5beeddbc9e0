"""
Tests for `domain/conditions.py`.

Covers contract rules:
- Every operator's semantics, including absent-field behaviour.
- A rule matches only when all conditions match; an empty list matches.
- Unknown fields raise UnknownFieldError.
- The first matching rule in evaluation order wins.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from domain.assignment_rule import AssignmentRule, Condition, ConditionOperator, RuleType, order_rules
from domain.conditions import conditions_match, evaluate_condition, first_matching_rule, read_field
from domain.enquiry import Priority, SourceType
from domain.errors import UnknownFieldError
from tests.fakes import NOW, make_enquiry


def cond(field: str, operator: str, value) -> Condition:
    return Condition(field=field, operator=ConditionOperator(operator), value=value)


def rule(rule_id: str, priority: int = 0, conditions=(), created_offset_min: int = 0, **kwargs) -> AssignmentRule:
    return AssignmentRule(
        rule_id=rule_id,
        name=rule_id,
        rule_type=kwargs.pop("rule_type", RuleType.MANUAL),
        created_at=NOW + timedelta(minutes=created_offset_min),
        priority=priority,
        conditions=tuple(conditions),
        **kwargs,
    )


class TestOperators:
    def test_equals_and_not_equals_compare_enum_values(self) -> None:
        enquiry = make_enquiry(source_type=SourceType.WEBSITE)
        assert evaluate_condition(enquiry, cond("source_type", "equals", "Website"))
        assert not evaluate_condition(enquiry, cond("source_type", "equals", "WhatsApp"))
        assert evaluate_condition(enquiry, cond("source_type", "not_equals", "WhatsApp"))

    def test_contains_on_strings(self) -> None:
        enquiry = make_enquiry(project_location="Pune, Maharashtra")
        assert evaluate_condition(enquiry, cond("project_location", "contains", "Pune"))
        assert not evaluate_condition(enquiry, cond("project_location", "contains", "Delhi"))

    def test_contains_is_false_and_not_contains_true_for_absent_field(self) -> None:
        enquiry = make_enquiry(project_location=None)
        assert not evaluate_condition(enquiry, cond("project_location", "contains", "Pune"))
        assert evaluate_condition(enquiry, cond("project_location", "not_contains", "Pune"))

    def test_greater_and_less_than_on_numbers(self) -> None:
        enquiry = make_enquiry(pv_capacity_kw=12.5)
        assert evaluate_condition(enquiry, cond("pv_capacity_kw", "greater_than", 10))
        assert not evaluate_condition(enquiry, cond("pv_capacity_kw", "less_than", 10))
        assert evaluate_condition(enquiry, cond("pv_capacity_kw", "less_than", "20"))

    def test_ordering_against_absent_value_is_false(self) -> None:
        enquiry = make_enquiry(annual_revenue=None)
        assert not evaluate_condition(enquiry, cond("annual_revenue", "greater_than", 0))
        assert not evaluate_condition(enquiry, cond("annual_revenue", "less_than", 0))

    def test_greater_than_on_dates(self) -> None:
        enquiry = make_enquiry()
        assert evaluate_condition(enquiry, cond("created_at", "greater_than", "2024-01-01T00:00:00Z"))
        assert not evaluate_condition(enquiry, cond("created_at", "greater_than", "2024-02-01"))

    def test_in_and_not_in_require_list_values(self) -> None:
        enquiry = make_enquiry(priority=Priority.HIGH)
        assert evaluate_condition(enquiry, cond("priority", "in", ["HIGH", "MEDIUM"]))
        assert not evaluate_condition(enquiry, cond("priority", "in", ["LOW"]))
        assert not evaluate_condition(enquiry, cond("priority", "in", "HIGH"))
        assert evaluate_condition(enquiry, cond("priority", "not_in", ["LOW"]))
        assert not evaluate_condition(enquiry, cond("priority", "not_in", ["HIGH"]))


def test_all_conditions_must_match() -> None:
    enquiry = make_enquiry(source_type=SourceType.WEBSITE, priority=Priority.LOW)
    assert conditions_match(enquiry, [cond("source_type", "equals", "Website")])
    assert not conditions_match(
        enquiry,
        [cond("source_type", "equals", "Website"), cond("priority", "equals", "HIGH")],
    )


def test_empty_conditions_match_everything() -> None:
    assert conditions_match(make_enquiry(), [])


def test_unknown_field_raises() -> None:
    with pytest.raises(UnknownFieldError) as exc:
        read_field(make_enquiry(), "favourite_colour")
    assert exc.value.kind == "unknown_field"


def test_first_matching_rule_respects_priority_then_age() -> None:
    enquiry = make_enquiry()
    rules = [
        rule("RULE-B", priority=5, created_offset_min=10),
        rule("RULE-A", priority=5, created_offset_min=0),
        rule("RULE-LOW", priority=1),
        rule("RULE-TOP", priority=9, conditions=[cond("source_type", "equals", "WhatsApp")]),
    ]
    # RULE-TOP does not match; among the priority-5 rules the older one wins.
    assert first_matching_rule(enquiry, order_rules(rules)).rule_id == "RULE-A"


def test_inactive_rules_are_not_ordered() -> None:
    rules = [rule("RULE-OFF", priority=10, is_active=False), rule("RULE-ON", priority=1)]
    assert [r.rule_id for r in order_rules(rules)] == ["RULE-ON"]


def test_no_match_returns_none() -> None:
    rules = [rule("RULE-1", conditions=[cond("source_type", "equals", "Referral")])]
    assert first_matching_rule(make_enquiry(), order_rules(rules)) is None
