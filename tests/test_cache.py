"""Tests for math_council/cache.py."""

from datetime import datetime, timezone

import pytest

from math_council.cache import SessionCache
from math_council.models import SessionRecord, SessionState


def _state(session_id: int) -> SessionState:
    record = SessionRecord(session_id, f"Problem {session_id}", "easy", datetime.now(timezone.utc))
    return SessionState(session=record)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_get_returns_stored_state():
    cache = SessionCache()
    state = _state(1)
    cache.put(1, state)
    assert cache.get(1) is state
    assert 1 in cache
    assert len(cache) == 1


def test_missing_entry_returns_none():
    assert SessionCache().get(7) is None


def test_lru_evicts_least_recently_used():
    evicted: list[int] = []
    cache = SessionCache(max_sessions=2, on_evict=evicted.append)
    cache.put(1, _state(1))
    cache.put(2, _state(2))
    cache.get(1)  # 2 is now least recently used

    cache.put(3, _state(3))

    assert evicted == [2]
    assert 1 in cache and 3 in cache
    assert 2 not in cache


def test_idle_entries_expire():
    clock = FakeClock()
    evicted: list[int] = []
    cache = SessionCache(ttl_sec=10, on_evict=evicted.append, clock=clock)
    cache.put(1, _state(1))

    clock.now = 5
    assert cache.get(1) is not None
    clock.now = 14  # 9s since last access
    assert cache.get(1) is not None
    clock.now = 30
    assert cache.get(1) is None
    assert evicted == [1]


def test_peek_does_not_refresh_age():
    clock = FakeClock()
    cache = SessionCache(ttl_sec=10, clock=clock)
    cache.put(1, _state(1))
    clock.now = 8
    assert cache.peek(1) is not None
    clock.now = 11
    assert cache.peek(1) is None


def test_pop_skips_eviction_callback():
    evicted: list[int] = []
    cache = SessionCache(on_evict=evicted.append)
    state = _state(1)
    cache.put(1, state)

    assert cache.pop(1) is state
    assert cache.pop(1) is None
    assert evicted == []


def test_max_sessions_must_be_positive():
    with pytest.raises(ValueError):
        SessionCache(max_sessions=0)


def test_pinned_entry_survives_lru_pressure():
    pinned = {1}
    evicted: list[int] = []
    cache = SessionCache(max_sessions=1, on_evict=evicted.append, is_pinned=lambda sid: sid in pinned)
    first = _state(1)
    cache.put(1, first)

    cache.put(2, _state(2))

    assert evicted == []
    assert cache.get(1) is first
    assert len(cache) == 2

    pinned.clear()
    cache.put(3, _state(3))
    assert evicted == [2, 1]
    assert len(cache) == 1


def test_pinned_entry_does_not_expire():
    clock = FakeClock()
    pinned = {1}
    cache = SessionCache(ttl_sec=10, is_pinned=lambda sid: sid in pinned, clock=clock)
    state = _state(1)
    cache.put(1, state)

    clock.now = 100
    assert cache.peek(1) is state

    pinned.clear()
    assert cache.peek(1) is None
