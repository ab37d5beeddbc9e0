"""
Domain: Audit entries and notifications.

Both are write-only records produced as side effects of enquiry operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class AuditEntry:
    actor: Optional[UUID]
    entity_type: str
    entity_id: str
    action: str
    timestamp: datetime
    changes: Mapping[str, Any] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("timestamp", self.timestamp)


@dataclass(frozen=True, slots=True)
class Notification:
    recipient: UUID
    title: str
    message: str
    created_at: datetime
    priority: str = "medium"

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)


__all__ = ["AuditEntry", "Notification"]
