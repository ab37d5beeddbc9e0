"""
Assignment rule management.

Rules are validated in full on create and update so the engine never meets a
malformed rule (unknown condition field, non-list `in` value, empty pool).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.assignment_rule import AssignmentRule, Condition, ConditionOperator, PoolMember, RuleType, rule_problems
from domain.codes import RULE_PREFIX, day_prefix, next_code
from domain.conditions import ENQUIRY_FIELDS
from domain.errors import NotFoundError, ValidationError
from domain.user import CurrentUser
from services.context import ServiceContext
from services.side_effects import PostCommitHooks

logger = logging.getLogger(__name__)


def _enum_member(enum_cls: Any, raw: Any, label: str, errors: List[str]) -> Any:
    value = raw.value if hasattr(raw, "value") else raw
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        errors.append(f"{label} must be one of: {allowed}")
        return None


def _parse_conditions(raw: Any, errors: List[str]) -> tuple:
    conditions = []
    for idx, item in enumerate(raw or [], start=1):
        if not isinstance(item, Mapping) or not item.get("field") or not item.get("operator"):
            errors.append(f"Condition {idx}: field and operator are required")
            continue
        operator = _enum_member(ConditionOperator, item["operator"], f"Condition {idx} operator", errors)
        if operator is not None:
            conditions.append(Condition(field=str(item["field"]), operator=operator, value=item.get("value")))
    return tuple(conditions)


def _parse_pool(raw: Any, errors: List[str]) -> tuple:
    members = []
    for idx, item in enumerate(raw or [], start=1):
        if not isinstance(item, Mapping) or not item.get("user_id"):
            errors.append(f"Assignee {idx}: user_id is required")
            continue
        try:
            user_id = UUID(str(item["user_id"]))
        except ValueError:
            errors.append(f"Assignee {idx}: user_id is not a valid id")
            continue
        weight = item.get("weight")
        members.append(
            PoolMember(
                user_id=user_id,
                weight=1 if weight is None else weight,
                max_daily_assignments=int(item.get("max_daily_assignments") or 0),
            )
        )
    return tuple(members)


class RuleService:
    def __init__(self, ctx: ServiceContext):
        self._ctx = ctx

    def list_rules(self) -> List[AssignmentRule]:
        return sorted(self._ctx.rules.list_all(), key=AssignmentRule.sort_key)

    def get_rule(self, rule_id: str) -> AssignmentRule:
        rule = self._ctx.rules.get(rule_id)
        if rule is None:
            raise NotFoundError("Assignment rule", rule_id)
        return rule

    def _apply_body(self, base: AssignmentRule, body: Mapping[str, Any]) -> AssignmentRule:
        errors: List[str] = []
        changes: dict = {}
        if "name" in body:
            changes["name"] = (body.get("name") or "").strip()
        if "description" in body:
            changes["description"] = body.get("description")
        if "is_active" in body and body["is_active"] is not None:
            changes["is_active"] = bool(body["is_active"])
        if "priority" in body and body["priority"] is not None:
            changes["priority"] = int(body["priority"])
        if "rule_type" in body:
            rule_type = _enum_member(RuleType, body.get("rule_type"), "Rule type", errors)
            if rule_type is not None:
                changes["rule_type"] = rule_type
        if "conditions" in body:
            changes["conditions"] = _parse_conditions(body.get("conditions"), errors)
        if "assignment_to" in body:
            changes["assignment_to"] = _parse_pool(body.get("assignment_to"), errors)
        if "fallback_user_id" in body:
            raw = body.get("fallback_user_id")
            try:
                changes["fallback_user_id"] = UUID(str(raw)) if raw else None
            except ValueError:
                errors.append("Fallback user is not a valid id")

        rule = replace(base, **changes)
        errors.extend(rule_problems(rule, tuple(ENQUIRY_FIELDS)))
        if errors:
            raise ValidationError(errors)
        return rule

    def _ensure_unique_name(self, name: str, rule_id: Optional[str]) -> None:
        existing = self._ctx.rules.get_by_name(name)
        if existing is not None and existing.rule_id != rule_id:
            raise ValidationError([f"An assignment rule named '{name}' already exists"])

    def create_rule(self, body: Mapping[str, Any], actor: CurrentUser) -> AssignmentRule:
        now = self._ctx.clock()
        if not body.get("rule_type"):
            raise ValidationError(["Rule type is required"])
        draft = AssignmentRule(
            rule_id=next_code(RULE_PREFIX, now, self._ctx.rules.last_code_with_prefix(day_prefix(RULE_PREFIX, now))),
            name="",
            rule_type=RuleType.MANUAL,
            created_at=now,
        )
        rule = self._apply_body(draft, body)
        self._ensure_unique_name(rule.name, None)
        saved = self._ctx.rules.insert(rule)

        hooks = PostCommitHooks()
        hooks.add("audit_rule_create", self._ctx.audit.record, actor.id, "assignment_rule", rule.rule_id, "create")
        hooks.run()
        logger.info("Assignment rule created", extra={"rule_id": rule.rule_id, "rule_type": rule.rule_type.value})
        return saved

    def update_rule(self, rule_id: str, body: Mapping[str, Any], actor: CurrentUser) -> AssignmentRule:
        existing = self.get_rule(rule_id)
        rule = replace(self._apply_body(existing, body), updated_at=self._ctx.clock())
        if rule.name != existing.name:
            self._ensure_unique_name(rule.name, rule_id)
        self._ctx.rules.update(rule)

        hooks = PostCommitHooks()
        hooks.add(
            "audit_rule_update",
            self._ctx.audit.record,
            actor.id,
            "assignment_rule",
            rule_id,
            "update",
            {k: getattr(v, "value", v) for k, v in body.items() if k in ("name", "is_active", "priority", "rule_type")},
        )
        hooks.run()
        return rule

    def set_active(self, rule_id: str, active: bool, actor: CurrentUser) -> AssignmentRule:
        return self.update_rule(rule_id, {"is_active": active}, actor)

    def delete_rule(self, rule_id: str, actor: CurrentUser) -> None:
        self.get_rule(rule_id)
        self._ctx.rules.delete(rule_id)
        hooks = PostCommitHooks()
        hooks.add("audit_rule_delete", self._ctx.audit.record, actor.id, "assignment_rule", rule_id, "delete")
        hooks.run()
        logger.info("Assignment rule deleted", extra={"rule_id": rule_id})


__all__ = ["RuleService"]
