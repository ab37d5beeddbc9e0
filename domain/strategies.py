"""
Domain: Candidate selection for assignment strategies (pure).

The storage-dependent parts (reading loads, persisting the round-robin cursor)
live in `services.assignment_service`; this module only decides.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .assignment_rule import PoolMember


@dataclass(frozen=True, slots=True)
class RoundRobinPick:
    member: PoolMember
    position: int
    next_cursor: int


def select_round_robin(pool: Sequence[PoolMember], cursor: int) -> Optional[RoundRobinPick]:
    """
    Rotate through `pool` in order.

    The member at `cursor mod len(pool)` is picked and the cursor advances by
    one, so N consecutive picks over a pool of N visit every member once.
    """

    if not pool:
        return None
    position = cursor % len(pool)
    return RoundRobinPick(member=pool[position], position=position, next_cursor=position + 1)


@dataclass(frozen=True, slots=True)
class CandidateLoad:
    """
    Workload snapshot for one pool member.

    current_load: enquiries assigned to the member with an open status
    assigned_today: assignments the member received since UTC midnight
    """

    member: PoolMember
    current_load: int
    assigned_today: int = 0

    @property
    def weight(self) -> float:
        return self.member.weight if self.member.weight and self.member.weight >= 1 else 1

    @property
    def weighted_load(self) -> float:
        return self.current_load / self.weight

    @property
    def at_daily_cap(self) -> bool:
        return self.member.has_daily_cap and self.assigned_today >= self.member.max_daily_assignments


def eligible_loads(loads: Sequence[CandidateLoad]) -> Tuple[CandidateLoad, ...]:
    return tuple(load for load in loads if not load.at_daily_cap)


def select_least_loaded(loads: Sequence[CandidateLoad]) -> Optional[CandidateLoad]:
    """
    Minimum weighted load among members under their daily cap.

    Ties go to the member that appears first in the pool.
    """

    best: Optional[CandidateLoad] = None
    for load in eligible_loads(loads):
        if best is None or load.weighted_load < best.weighted_load:
            best = load
    return best


__all__ = [
    "CandidateLoad",
    "RoundRobinPick",
    "eligible_loads",
    "select_least_loaded",
    "select_round_robin",
]
