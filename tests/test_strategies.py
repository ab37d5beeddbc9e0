"""
Tests for `domain/strategies.py`.

Covers contract rules:
- Round-robin visits each pool member once over N picks.
- Load-based picks the minimum load / weight, ties by pool order.
- A member at its daily cap is never picked.
"""

from __future__ import annotations

from uuid import UUID

from domain.assignment_rule import PoolMember
from domain.strategies import CandidateLoad, select_least_loaded, select_round_robin

A = UUID("00000000-0000-0000-0000-00000000000a")
B = UUID("00000000-0000-0000-0000-00000000000b")
C = UUID("00000000-0000-0000-0000-00000000000c")


def test_round_robin_visits_every_member_once() -> None:
    pool = [PoolMember(A), PoolMember(B), PoolMember(C)]
    cursor = 0
    picked = []
    for _ in range(len(pool)):
        pick = select_round_robin(pool, cursor)
        picked.append(pick.member.user_id)
        cursor = pick.next_cursor
    assert picked == [A, B, C]


def test_round_robin_wraps_stale_cursor() -> None:
    pool = [PoolMember(A), PoolMember(B)]
    pick = select_round_robin(pool, 7)
    assert pick.position == 1
    assert pick.member.user_id == B
    assert pick.next_cursor == 2


def test_round_robin_empty_pool() -> None:
    assert select_round_robin([], 0) is None


def test_least_loaded_equal_weights() -> None:
    loads = [CandidateLoad(PoolMember(A), 2), CandidateLoad(PoolMember(B), 1)]
    assert select_least_loaded(loads).member.user_id == B


def test_least_loaded_uses_weight() -> None:
    # 4 / 2 = 2.0 beats 3 / 1 = 3.0
    loads = [CandidateLoad(PoolMember(A, weight=2), 4), CandidateLoad(PoolMember(B, weight=1), 3)]
    best = select_least_loaded(loads)
    assert best.member.user_id == A
    assert best.weighted_load == 2.0


def test_least_loaded_tie_goes_to_pool_order() -> None:
    loads = [CandidateLoad(PoolMember(A), 1), CandidateLoad(PoolMember(B), 1)]
    assert select_least_loaded(loads).member.user_id == A


def test_member_at_daily_cap_is_skipped() -> None:
    loads = [
        CandidateLoad(PoolMember(A, max_daily_assignments=3), current_load=0, assigned_today=3),
        CandidateLoad(PoolMember(B), current_load=10),
    ]
    assert select_least_loaded(loads).member.user_id == B


def test_zero_cap_means_unlimited() -> None:
    load = CandidateLoad(PoolMember(A, max_daily_assignments=0), current_load=0, assigned_today=500)
    assert not load.at_daily_cap


def test_everyone_capped_yields_none() -> None:
    loads = [CandidateLoad(PoolMember(A, max_daily_assignments=1), 0, assigned_today=1)]
    assert select_least_loaded(loads) is None
