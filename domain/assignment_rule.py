"""
Domain: Assignment rules.

Contract excerpts implemented here:
- Rules are evaluated in descending `priority`; ties are broken by `created_at`
  (oldest first) and then `rule_id`, so ordering is stable.
- All conditions of a rule must match (logical AND); an empty list matches.
- The first matching rule is applied exclusively.
- `assignment_to` is the candidate pool: `{user_id, weight, max_daily_assignments}`
  with weight >= 1 and max_daily_assignments >= 0 (0 means no cap).
- `rr_cursor` is the persisted round-robin position for this rule.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple
from uuid import UUID

from .time import require_utc_timestamp


class RuleType(str, Enum):
    ROUND_ROBIN = "round-robin"
    LOAD_BASED = "load-based"
    MANUAL = "manual"
    FALLBACK = "fallback"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    NOT_IN = "not_in"


@dataclass(frozen=True, slots=True)
class Condition:
    field: str
    operator: ConditionOperator
    value: Any


@dataclass(frozen=True, slots=True)
class PoolMember:
    """A candidate assignee in a rule's pool."""

    user_id: UUID
    weight: float = 1
    max_daily_assignments: int = 0

    @property
    def has_daily_cap(self) -> bool:
        return self.max_daily_assignments > 0


@dataclass(frozen=True, slots=True)
class AssignmentRule:
    rule_id: str
    name: str
    rule_type: RuleType
    created_at: datetime

    description: Optional[str] = None
    is_active: bool = True
    priority: int = 0
    conditions: Tuple[Condition, ...] = field(default_factory=tuple)
    assignment_to: Tuple[PoolMember, ...] = field(default_factory=tuple)
    fallback_user_id: Optional[UUID] = None
    rr_cursor: int = 0
    id: Optional[UUID] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    def sort_key(self) -> tuple:
        """Key for evaluation order: highest priority first, then oldest, then rule_id."""

        return (-self.priority, self.created_at, self.rule_id)


def order_rules(rules: Sequence[AssignmentRule]) -> List[AssignmentRule]:
    """Active rules in evaluation order."""

    return sorted((r for r in rules if r.is_active), key=AssignmentRule.sort_key)


def rule_problems(rule: AssignmentRule, known_fields: Sequence[str]) -> List[str]:
    """
    Validate a rule definition, returning every problem found.

    Checked at create/update time so malformed rules never reach the engine.
    """

    problems: List[str] = []
    if not rule.name or not rule.name.strip():
        problems.append("Rule name is required")

    for idx, condition in enumerate(rule.conditions, start=1):
        if condition.field not in known_fields:
            problems.append(f"Condition {idx}: unknown field '{condition.field}'")
        if condition.operator in (ConditionOperator.IN, ConditionOperator.NOT_IN) and not isinstance(
            condition.value, (list, tuple)
        ):
            problems.append(f"Condition {idx}: '{condition.operator.value}' requires a list value")
        if condition.value is None:
            problems.append(f"Condition {idx}: value is required")

    for idx, member in enumerate(rule.assignment_to, start=1):
        if member.weight < 1:
            problems.append(f"Assignee {idx}: weight must be at least 1")
        if member.max_daily_assignments < 0:
            problems.append(f"Assignee {idx}: max_daily_assignments cannot be negative")

    if rule.rule_type in (RuleType.ROUND_ROBIN, RuleType.LOAD_BASED) and not rule.assignment_to:
        problems.append(f"A {rule.rule_type.value} rule needs at least one assignee")
    if rule.rule_type == RuleType.FALLBACK and rule.fallback_user_id is None:
        problems.append("A fallback rule needs a fallback user")

    return problems


__all__ = [
    "AssignmentRule",
    "Condition",
    "ConditionOperator",
    "PoolMember",
    "RuleType",
    "order_rules",
    "rule_problems",
]
