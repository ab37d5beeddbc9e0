"""
Assignment rule repository (persistence).

Conditions and the candidate pool are stored as JSON columns on the
`assignment_rules` table. Ordering of evaluation is a domain concern
(`domain.assignment_rule.order_rules`); this module only returns rows.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.assignment_rule import AssignmentRule, Condition, ConditionOperator, PoolMember, RuleType
from repositories.serialization import (
    optional_datetime,
    optional_iso,
    optional_uuid,
    parse_utc_datetime,
    raise_on_error,
    response_rows,
    to_iso_utc,
    uuid_str,
)

_RULES_TABLE: str = "assignment_rules"


def condition_from_json(data: Mapping[str, Any]) -> Condition:
    return Condition(
        field=str(data["field"]),
        operator=ConditionOperator(data["operator"]),
        value=data.get("value"),
    )


def pool_member_from_json(data: Mapping[str, Any]) -> PoolMember:
    return PoolMember(
        user_id=UUID(str(data["user_id"])),
        weight=data.get("weight") or 1,
        max_daily_assignments=int(data.get("max_daily_assignments") or 0),
    )


def rule_to_row(rule: AssignmentRule) -> dict[str, Any]:
    row = {
        "rule_id": rule.rule_id,
        "name": rule.name,
        "description": rule.description,
        "is_active": rule.is_active,
        "priority": rule.priority,
        "rule_type": rule.rule_type.value,
        "conditions": [
            {"field": c.field, "operator": c.operator.value, "value": c.value} for c in rule.conditions
        ],
        "assignment_to": [
            {
                "user_id": str(m.user_id),
                "weight": m.weight,
                "max_daily_assignments": m.max_daily_assignments,
            }
            for m in rule.assignment_to
        ],
        "fallback_user_id": uuid_str(rule.fallback_user_id),
        "rr_cursor": rule.rr_cursor,
        "created_at": to_iso_utc(rule.created_at, name="created_at"),
        "updated_at": optional_iso(rule.updated_at, name="updated_at"),
    }
    if rule.id is not None:
        row["id"] = str(rule.id)
    return row


def row_to_rule(row: Mapping[str, Any]) -> AssignmentRule:
    return AssignmentRule(
        id=optional_uuid(row.get("id")),
        rule_id=str(row["rule_id"]),
        name=str(row["name"]),
        description=row.get("description"),
        is_active=bool(row.get("is_active", True)),
        priority=int(row.get("priority") or 0),
        rule_type=RuleType(row["rule_type"]),
        conditions=tuple(condition_from_json(c) for c in (row.get("conditions") or [])),
        assignment_to=tuple(pool_member_from_json(m) for m in (row.get("assignment_to") or [])),
        fallback_user_id=optional_uuid(row.get("fallback_user_id")),
        rr_cursor=int(row.get("rr_cursor") or 0),
        created_at=parse_utc_datetime(row["created_at"]),
        updated_at=optional_datetime(row.get("updated_at")),
    )


class RuleRepository:
    """Supabase-backed persistence for assignment rules."""

    def __init__(self, client: Any):
        self._client = client

    def _table(self) -> Any:
        return self._client.table(_RULES_TABLE)

    def list_active(self) -> List[AssignmentRule]:
        response = (
            self._table()
            .select("*")
            .eq("is_active", True)
            .order("priority", desc=True)
            .order("created_at")
            .execute()
        )
        return [row_to_rule(r) for r in response_rows(response, "fetch active rules")]

    def list_all(self) -> List[AssignmentRule]:
        response = self._table().select("*").order("priority", desc=True).order("created_at").execute()
        return [row_to_rule(r) for r in response_rows(response, "fetch rules")]

    def get(self, rule_id: str) -> Optional[AssignmentRule]:
        response = self._table().select("*").eq("rule_id", rule_id).limit(1).execute()
        rows = response_rows(response, "fetch rule")
        return row_to_rule(rows[0]) if rows else None

    def get_by_name(self, name: str) -> Optional[AssignmentRule]:
        response = self._table().select("*").eq("name", name).limit(1).execute()
        rows = response_rows(response, "fetch rule")
        return row_to_rule(rows[0]) if rows else None

    def insert(self, rule: AssignmentRule) -> AssignmentRule:
        response = self._table().insert(rule_to_row(rule)).execute()
        rows = response_rows(response, "insert rule")
        return row_to_rule(rows[0]) if rows else rule

    def update(self, rule: AssignmentRule) -> AssignmentRule:
        payload = rule_to_row(rule)
        payload.pop("id", None)
        payload.pop("created_at")
        response = self._table().update(payload).eq("rule_id", rule.rule_id).execute()
        raise_on_error(response, "update rule")
        return rule

    def delete(self, rule_id: str) -> bool:
        response = self._table().delete().eq("rule_id", rule_id).execute()
        return bool(response_rows(response, "delete rule"))

    def set_cursor(self, rule_id: str, cursor: int) -> None:
        """Persist the round-robin position. Last writer wins."""

        response = self._table().update({"rr_cursor": cursor}).eq("rule_id", rule_id).execute()
        raise_on_error(response, "advance round-robin cursor")

    def last_code_with_prefix(self, prefix: str) -> Optional[str]:
        response = (
            self._table()
            .select("rule_id")
            .like("rule_id", f"{prefix}-%")
            .order("rule_id", desc=True)
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "read last rule id")
        return rows[0]["rule_id"] if rows else None


__all__ = ["RuleRepository", "condition_from_json", "pool_member_from_json", "row_to_rule", "rule_to_row"]
