"""
Domain: SLA due dates.

Contract excerpts implemented here:
- Response and resolution deadlines are looked up from priority:
  response  HIGH=2h  MEDIUM=4h  LOW=8h
  resolution HIGH=24h MEDIUM=48h LOW=72h
- Deadlines are anchored at the enquiry's `created_at`, never at the time of a
  priority edit.
- The configuration is an explicit value passed to every computation; there is
  no module-level mutable copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping, Optional

from .enquiry import Enquiry, Priority
from .errors import ValidationError
from .time import require_utc_timestamp

_PRIORITY_KEYS = ("high", "medium", "low")


class SlaState(str, Enum):
    ON_TRACK = "on_track"
    WARNING = "warning"
    BREACHED = "breached"


def _default_response_hours() -> dict[str, float]:
    return {"high": 2, "medium": 4, "low": 8}


def _default_resolution_hours() -> dict[str, float]:
    return {"high": 24, "medium": 48, "low": 72}


@dataclass(frozen=True, slots=True)
class SlaConfig:
    """
    Priority → hours lookup for response and resolution deadlines.

    `warning_threshold` is the fraction of the window remaining at which a
    deadline is reported as `warning`.
    """

    response_hours: Mapping[str, float] = field(default_factory=_default_response_hours)
    resolution_hours: Mapping[str, float] = field(default_factory=_default_resolution_hours)
    warning_threshold: float = 0.25

    def __post_init__(self) -> None:
        errors = []
        for label, table in (("response", self.response_hours), ("resolution", self.resolution_hours)):
            for key in _PRIORITY_KEYS:
                value = table.get(key)
                if value is None:
                    errors.append(f"Please provide {label} time for {key} priority")
                elif value <= 0:
                    errors.append(f"{label.capitalize()} time for {key} priority must be positive")
        if not 0 < self.warning_threshold < 1:
            errors.append("Warning threshold must be between 0 and 1")
        if errors:
            raise ValidationError(errors)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SlaConfig":
        """Build from the JSON shape used by the settings endpoint."""

        response = data.get("response_times") or data.get("responseTimes")
        resolution = data.get("resolution_times") or data.get("resolutionTimes")
        if not response or not resolution:
            raise ValidationError(["Please provide response and resolution times"])
        threshold = data.get("warning_threshold", data.get("warningThreshold")) or 0.25
        return cls(
            response_hours={k: float(v) for k, v in response.items() if v is not None},
            resolution_hours={k: float(v) for k, v in resolution.items() if v is not None},
            warning_threshold=float(threshold),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "response_times": dict(self.response_hours),
            "resolution_times": dict(self.resolution_hours),
            "warning_threshold": self.warning_threshold,
        }

    def _hours(self, table: Mapping[str, float], priority: Priority | str) -> float:
        key = (priority.value if isinstance(priority, Priority) else str(priority)).lower()
        # Unrecognised priorities fall back to the medium window.
        return table.get(key, table["medium"])

    def response_window(self, priority: Priority | str) -> timedelta:
        return timedelta(hours=self._hours(self.response_hours, priority))

    def resolution_window(self, priority: Priority | str) -> timedelta:
        return timedelta(hours=self._hours(self.resolution_hours, priority))


DEFAULT_SLA_CONFIG = SlaConfig()


@dataclass(frozen=True, slots=True)
class DueDates:
    response_due: datetime
    resolution_due: datetime


def compute_due_dates(priority: Priority | str, anchor: datetime, config: SlaConfig) -> DueDates:
    """Compute response/resolution deadlines for `priority` anchored at `anchor`."""

    require_utc_timestamp("anchor", anchor)
    return DueDates(
        response_due=anchor + config.response_window(priority),
        resolution_due=anchor + config.resolution_window(priority),
    )


def deadline_state(
    anchor: datetime,
    due: Optional[datetime],
    as_of: datetime,
    config: SlaConfig,
) -> Optional[SlaState]:
    """
    Classify a single deadline.

    - breached: `as_of` is past `due`
    - warning: remaining time is at most `warning_threshold` of the whole window
    - on_track: otherwise
    Returns None when there is no deadline.
    """

    if due is None:
        return None
    require_utc_timestamp("as_of", as_of)
    if as_of > due:
        return SlaState.BREACHED
    window = due - anchor
    remaining = due - as_of
    if window > timedelta(0) and remaining <= window * config.warning_threshold:
        return SlaState.WARNING
    return SlaState.ON_TRACK


@dataclass(frozen=True, slots=True)
class EnquirySlaStatus:
    response: Optional[SlaState]
    resolution: Optional[SlaState]


def sla_state(enquiry: Enquiry, as_of: datetime, config: SlaConfig) -> EnquirySlaStatus:
    """
    SLA state of both deadlines of `enquiry` at `as_of`.

    Closed enquiries are measured at their closing time so a conversion inside
    the window stays on track forever.
    """

    measured_at = enquiry.closed_at or as_of
    return EnquirySlaStatus(
        response=deadline_state(enquiry.created_at, enquiry.response_due, measured_at, config),
        resolution=deadline_state(enquiry.created_at, enquiry.resolution_due, measured_at, config),
    )


__all__ = [
    "DEFAULT_SLA_CONFIG",
    "DueDates",
    "EnquirySlaStatus",
    "SlaConfig",
    "SlaState",
    "compute_due_dates",
    "deadline_state",
    "sla_state",
]
