"""
Audit and notification log repositories (persistence, append-only).
"""

from __future__ import annotations

from typing import Any

from domain.activity import AuditEntry, Notification
from repositories.serialization import raise_on_error, to_iso_utc, uuid_str

_AUDIT_TABLE: str = "audit_logs"
_NOTIFICATIONS_TABLE: str = "notification_logs"


class AuditLogRepository:
    def __init__(self, client: Any):
        self._client = client

    def insert(self, entry: AuditEntry) -> None:
        payload = {
            "actor": uuid_str(entry.actor),
            "entity_type": entry.entity_type,
            "entity_id": entry.entity_id,
            "action": entry.action,
            "changes": dict(entry.changes),
            "metadata": dict(entry.metadata),
            "timestamp": to_iso_utc(entry.timestamp),
        }
        response = self._client.table(_AUDIT_TABLE).insert(payload).execute()
        raise_on_error(response, "write audit entry")


class NotificationRepository:
    def __init__(self, client: Any):
        self._client = client

    def insert(self, notification: Notification) -> None:
        payload = {
            "recipient": str(notification.recipient),
            "title": notification.title,
            "message": notification.message,
            "priority": notification.priority,
            "created_at": to_iso_utc(notification.created_at, name="created_at"),
        }
        response = self._client.table(_NOTIFICATIONS_TABLE).insert(payload).execute()
        raise_on_error(response, "write notification")


__all__ = ["AuditLogRepository", "NotificationRepository"]
