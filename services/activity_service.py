"""
Notification and audit collaborators.

Both write to their log tables. Callers queue them on `PostCommitHooks` so a
failure here never aborts the enquiry operation that triggered it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional
from uuid import UUID

from domain.activity import AuditEntry, Notification
from domain.time import utc_now

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, repository: Any, clock: Callable[[], datetime] = utc_now):
        self._repository = repository
        self._clock = clock

    def notify(self, recipient: UUID, title: str, message: str, priority: str = "medium") -> Notification:
        notification = Notification(
            recipient=recipient,
            title=title,
            message=message,
            priority=priority,
            created_at=self._clock(),
        )
        self._repository.insert(notification)
        logger.info("Notification queued", extra={"recipient": str(recipient), "title": title})
        return notification


class AuditTrail:
    def __init__(self, repository: Any, clock: Callable[[], datetime] = utc_now):
        self._repository = repository
        self._clock = clock

    def record(
        self,
        actor: Optional[UUID],
        entity_type: str,
        entity_id: str,
        action: str,
        changes: Optional[Mapping[str, Any]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            actor=actor,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            changes=dict(changes or {}),
            metadata=dict(metadata or {}),
            timestamp=self._clock(),
        )
        self._repository.insert(entry)
        return entry


__all__ = ["AuditTrail", "Notifier"]
