"""
Domain: Condition evaluation for assignment rules (pure).

Fields are read through an explicit registry of accessors rather than by
dynamic attribute lookup. Referencing a field that is not registered raises
`UnknownFieldError`.

Accessors normalise values to their JSON shapes (enum values, string UUIDs) so
conditions stored as JSON compare naturally.

Operator semantics:
- equals / not_equals: strict equality / inequality
- contains: substring (strings) or membership (lists); false when the field is absent
- not_contains: negation of contains; true when the field is absent
- greater_than / less_than: numeric or date ordering; false when not comparable
- in / not_in: the condition value must be a list; membership of the field value
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence
from uuid import UUID

from .assignment_rule import AssignmentRule, Condition, ConditionOperator
from .enquiry import Enquiry
from .errors import UnknownFieldError

Accessor = Callable[[Enquiry], Any]


def _normalise(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value


def _attr(name: str) -> Accessor:
    def read(enquiry: Enquiry) -> Any:
        return _normalise(getattr(enquiry, name))

    read.__name__ = f"read_{name}"
    return read


_FIELD_NAMES = (
    "enquiry_code",
    "name",
    "mobile",
    "email",
    "company_name",
    "type_of_lead",
    "enquiry_profile",
    "source_type",
    "channel_type",
    "status",
    "stage",
    "priority",
    "business_model",
    "pv_capacity_kw",
    "category",
    "annual_revenue",
    "employee_count",
    "need_loan",
    "project_location",
    "state",
    "district",
    "pincode",
    "assigned_team",
    "call_status",
    "created_at",
    "response_due",
    "resolution_due",
)

ENQUIRY_FIELDS: Mapping[str, Accessor] = {name: _attr(name) for name in _FIELD_NAMES}


def read_field(enquiry: Enquiry, field: str) -> Any:
    try:
        accessor = ENQUIRY_FIELDS[field]
    except KeyError:
        raise UnknownFieldError(field) from None
    return accessor(enquiry)


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _ordered(left: Any, right: Any) -> Optional[tuple]:
    """Coerce a pair to mutually comparable values, or None."""

    if left is None or right is None:
        return None
    if isinstance(left, (int, float)) and not isinstance(left, bool):
        if isinstance(right, (int, float)) and not isinstance(right, bool):
            return left, right
        try:
            return left, float(right)
        except (TypeError, ValueError):
            return None
    if isinstance(left, (datetime, date)):
        right_dt = _as_datetime(right)
        left_dt = _as_datetime(left)
        if right_dt is None or left_dt is None:
            return None
        return left_dt, right_dt
    if isinstance(left, str) and isinstance(right, str):
        return left, right
    return None


def _contains(value: Any, needle: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return isinstance(needle, str) and needle in value
    if isinstance(value, (list, tuple, set, frozenset)):
        return needle in value
    return False


def evaluate_condition(enquiry: Enquiry, condition: Condition) -> bool:
    value = read_field(enquiry, condition.field)
    expected = condition.value
    op = condition.operator

    if op == ConditionOperator.EQUALS:
        return value == expected
    if op == ConditionOperator.NOT_EQUALS:
        return value != expected
    if op == ConditionOperator.CONTAINS:
        return _contains(value, expected)
    if op == ConditionOperator.NOT_CONTAINS:
        return value is None or not _contains(value, expected)
    if op in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        pair = _ordered(value, expected)
        if pair is None:
            return False
        left, right = pair
        return left > right if op == ConditionOperator.GREATER_THAN else left < right
    if op == ConditionOperator.IN:
        return isinstance(expected, (list, tuple)) and value in expected
    if op == ConditionOperator.NOT_IN:
        return not isinstance(expected, (list, tuple)) or value not in expected
    return False


def conditions_match(enquiry: Enquiry, conditions: Sequence[Condition]) -> bool:
    """Logical AND over `conditions`; an empty list matches."""

    return all(evaluate_condition(enquiry, c) for c in conditions)


def rule_matches(enquiry: Enquiry, rule: AssignmentRule) -> bool:
    return conditions_match(enquiry, rule.conditions)


def first_matching_rule(enquiry: Enquiry, ordered_rules: Sequence[AssignmentRule]) -> Optional[AssignmentRule]:
    for rule in ordered_rules:
        if rule_matches(enquiry, rule):
            return rule
    return None


__all__ = [
    "ENQUIRY_FIELDS",
    "conditions_match",
    "evaluate_condition",
    "first_matching_rule",
    "read_field",
    "rule_matches",
]
