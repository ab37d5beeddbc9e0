"""
Service wiring.

`ServiceContext` bundles the repositories and collaborators one request needs.
Services receive it explicitly; tests build one over in-memory repositories.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from domain.time import utc_now
from repositories.activity_repository import AuditLogRepository, NotificationRepository
from repositories.assignment_log_repository import AssignmentLogRepository
from repositories.enquiry_repository import EnquiryRepository
from repositories.rule_repository import RuleRepository
from repositories.user_repository import UserRepository
from services.activity_service import AuditTrail, Notifier

DEFAULT_DUPLICATE_WINDOW_DAYS = 7


def duplicate_window_from_env() -> timedelta:
    raw = os.getenv("DUPLICATE_WINDOW_DAYS")
    days = int(raw) if raw else DEFAULT_DUPLICATE_WINDOW_DAYS
    return timedelta(days=days)


@dataclass
class ServiceContext:
    enquiries: Any
    rules: Any
    assignment_logs: Any
    users: Any
    notifier: Notifier
    audit: AuditTrail
    clock: Callable[[], datetime] = utc_now
    duplicate_window: timedelta = field(default_factory=lambda: timedelta(days=DEFAULT_DUPLICATE_WINDOW_DAYS))


def build_context(client: Any) -> ServiceContext:
    """Wire the Supabase-backed repositories around one client."""

    return ServiceContext(
        enquiries=EnquiryRepository(client),
        rules=RuleRepository(client),
        assignment_logs=AssignmentLogRepository(client),
        users=UserRepository(client),
        notifier=Notifier(NotificationRepository(client)),
        audit=AuditTrail(AuditLogRepository(client)),
        duplicate_window=duplicate_window_from_env(),
    )


__all__ = ["DEFAULT_DUPLICATE_WINDOW_DAYS", "ServiceContext", "build_context", "duplicate_window_from_env"]
