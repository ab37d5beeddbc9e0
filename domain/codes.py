"""
Domain: Human-readable sequential codes.

Format: `<PREFIX>-YYYYMMDD-NNNN`, where the four-digit sequence restarts every
UTC day. Examples: `ENQ-20250101-0001`, `RULE-20250101-0002`,
`ALOG-20250101-0013`.

Generation reads the highest code issued today; two concurrent writers can
compute the same next code, which the storage layer's unique constraint then
rejects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .time import require_utc_timestamp

ENQUIRY_PREFIX = "ENQ"
RULE_PREFIX = "RULE"
ASSIGNMENT_LOG_PREFIX = "ALOG"


def day_prefix(prefix: str, now: datetime) -> str:
    require_utc_timestamp("now", now)
    return f"{prefix}-{now.strftime('%Y%m%d')}"


def next_code(prefix: str, now: datetime, last_code: Optional[str]) -> str:
    """Next code after `last_code` (the highest code already issued today, if any)."""

    base = day_prefix(prefix, now)
    sequence = 1
    if last_code and last_code.startswith(base + "-"):
        tail = last_code.rsplit("-", 1)[-1]
        if tail.isdigit():
            sequence = int(tail) + 1
    return f"{base}-{sequence:04d}"


__all__ = ["ASSIGNMENT_LOG_PREFIX", "ENQUIRY_PREFIX", "RULE_PREFIX", "day_prefix", "next_code"]
