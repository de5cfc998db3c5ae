"""Bounded session-id -> SessionState cache with LRU eviction and idle expiry."""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable

from math_council.models import SessionState

logger = logging.getLogger(__name__)


class SessionCache:
    """Holds the live mirrors of recently used sessions.

    An entry expires after ``ttl_sec`` seconds without access, and the least
    recently used entry is evicted once more than ``max_sessions`` are held.
    ``on_evict`` is called with the session id of every entry that leaves
    the cache through expiry or eviction (not through ``pop``).

    Entries for which ``is_pinned`` returns True are never expired or
    evicted; while pinned sessions hold the cache over ``max_sessions`` it
    stays over, and the surplus is trimmed on a later ``put``.
    """

    def __init__(
        self,
        max_sessions: int = 128,
        ttl_sec: float = 3600.0,
        on_evict: Callable[[int], None] | None = None,
        is_pinned: Callable[[int], bool] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self._max_sessions = max_sessions
        self._ttl_sec = ttl_sec
        self._on_evict = on_evict
        self._is_pinned = is_pinned or (lambda session_id: False)
        self._clock = clock
        self._entries: OrderedDict[int, tuple[SessionState, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, session_id: int) -> bool:
        return self.peek(session_id) is not None

    def get(self, session_id: int) -> SessionState | None:
        """Return the cached state and mark it as recently used."""
        state = self.peek(session_id)
        if state is not None:
            self._entries[session_id] = (state, self._clock())
            self._entries.move_to_end(session_id)
        return state

    def peek(self, session_id: int) -> SessionState | None:
        """Return the cached state without refreshing its age."""
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        state, last_used = entry
        if self._clock() - last_used > self._ttl_sec and not self._is_pinned(session_id):
            self._evict(session_id, "expired")
            return None
        return state

    def put(self, session_id: int, state: SessionState) -> None:
        self._entries[session_id] = (state, self._clock())
        self._entries.move_to_end(session_id)
        surplus = len(self._entries) - self._max_sessions
        if surplus <= 0:
            return
        victims = [
            sid for sid in self._entries
            if sid != session_id and not self._is_pinned(sid)
        ][:surplus]
        for victim in victims:
            self._evict(victim, "evicted")
        if len(victims) < surplus:
            logger.debug("Session cache %d over capacity, remaining entries are pinned", surplus - len(victims))

    def pop(self, session_id: int) -> SessionState | None:
        entry = self._entries.pop(session_id, None)
        return entry[0] if entry is not None else None

    def _evict(self, session_id: int, reason: str) -> None:
        del self._entries[session_id]
        logger.debug("Session %d %s from cache", session_id, reason)
        if self._on_evict is not None:
            self._on_evict(session_id)
