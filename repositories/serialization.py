"""
Row (de)serialization helpers shared by the repository modules.

Supabase returns ISO-8601 strings (sometimes with a trailing 'Z') for
timestamps and plain strings for UUIDs; the domain requires UTC datetimes and
UUID objects.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.time import require_utc_timestamp


def to_iso_utc(dt: datetime, *, name: str = "timestamp") -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def optional_iso(dt: Optional[datetime], *, name: str = "timestamp") -> Optional[str]:
    return to_iso_utc(dt, name=name) if dt is not None else None


def parse_utc_datetime(value: Any) -> datetime:
    """Parse a Supabase timestamp into a timezone-aware UTC datetime."""

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        # fromisoformat doesn't consistently accept 'Z' across versions.
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    # Naive timestamps from the backend are interpreted as UTC.
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def optional_datetime(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return parse_utc_datetime(value)


def optional_uuid(value: Any) -> Optional[UUID]:
    if value in (None, ""):
        return None
    return UUID(str(value))


def uuid_str(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value is not None else None


def raise_on_error(response: Any, action: str) -> None:
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")


def response_rows(response: Any, action: str) -> List[Mapping[str, Any]]:
    raise_on_error(response, action)
    return getattr(response, "data", None) or []


def response_count(response: Any, action: str) -> int:
    raise_on_error(response, action)
    count = getattr(response, "count", None)
    if count is None:
        return len(getattr(response, "data", None) or [])
    return int(count)


__all__ = [
    "optional_datetime",
    "optional_iso",
    "optional_uuid",
    "parse_utc_datetime",
    "raise_on_error",
    "response_count",
    "response_rows",
    "to_iso_utc",
    "uuid_str",
]
