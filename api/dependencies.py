"""
FastAPI dependencies: caller identity, role checks and service wiring.

Identity is established upstream (gateway / auth service) and forwarded as
`X-User-Id` and `X-User-Role` headers.
"""

from __future__ import annotations

from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Header, Request

from domain.errors import AuthenticationError, AuthorizationError
from domain.user import CurrentUser, Role
from repositories.client import get_supabase_client
from services.activity_service import AuditTrail
from services.assignment_history_service import AssignmentHistoryService
from services.context import ServiceContext, build_context
from services.enquiry_service import EnquiryService
from services.rule_service import RuleService
from services.sla_settings import SlaSettings


def get_current_user(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CurrentUser:
    if not x_user_id or not x_user_role:
        raise AuthenticationError()
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise AuthenticationError() from None
    request.state.actor_id = user_id
    return CurrentUser(id=user_id, role=x_user_role)


def require_roles(*roles: Role) -> Callable[..., CurrentUser]:
    """Dependency factory: the caller must hold one of `roles`."""

    def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_role(*roles):
            raise AuthorizationError()
        return user

    return checker


def get_service_context() -> ServiceContext:
    return build_context(get_supabase_client())


def get_audit_trail(ctx: ServiceContext = Depends(get_service_context)) -> AuditTrail:
    return ctx.audit


def audited(entity_type: str) -> Callable[..., None]:
    """
    Route dependency for mutating endpoints.

    Declared in the route decorator so it resolves before identity and role
    checks. It leaves the audit trail on `request.state`, where the error
    handlers in `api/main.py` use it to record rejected requests. Successful
    mutations are audited by the services themselves.
    """

    def mark(request: Request, audit: AuditTrail = Depends(get_audit_trail)) -> None:
        request.state.audit = audit
        request.state.audit_entity_type = entity_type

    return mark


def get_enquiry_service(ctx: ServiceContext = Depends(get_service_context)) -> EnquiryService:
    return EnquiryService(ctx)


def get_rule_service(ctx: ServiceContext = Depends(get_service_context)) -> RuleService:
    return RuleService(ctx)


def get_history_service(ctx: ServiceContext = Depends(get_service_context)) -> AssignmentHistoryService:
    return AssignmentHistoryService(ctx)


def get_sla_settings(request: Request) -> SlaSettings:
    return request.app.state.sla_settings


__all__ = [
    "audited",
    "get_audit_trail",
    "get_current_user",
    "get_enquiry_service",
    "get_history_service",
    "get_rule_service",
    "get_service_context",
    "get_sla_settings",
    "require_roles",
]
