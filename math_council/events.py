"""In-process notification bus: per-session fan-out of debate events to listeners."""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

TYPING = "typing"
NEW_MESSAGE = "new_message"
SESSION_UPDATED = "session_updated"
DEBATE_COMPLETE = "debate_complete"

EVENT_KINDS = frozenset({TYPING, NEW_MESSAGE, SESSION_UPDATED, DEBATE_COMPLETE})


@dataclass(frozen=True)
class Event:
    kind: str
    session_id: int
    payload: Any = None    # speaker name, Message, SessionStatus, or None


class EventBus:
    """Best-effort broadcast of events to the listeners of a session.

    Each listener owns a bounded queue. Publishing never blocks: when a
    listener's queue is full the event is dropped for that listener only.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._listeners: dict[int, set[asyncio.Queue[Event]]] = defaultdict(set)

    def subscribe(self, session_id: int) -> asyncio.Queue[Event]:
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._max_queue_size)
        self._listeners[session_id].add(queue)
        return queue

    def unsubscribe(self, session_id: int, queue: asyncio.Queue[Event]) -> None:
        listeners = self._listeners.get(session_id)
        if not listeners:
            return
        listeners.discard(queue)
        if not listeners:
            del self._listeners[session_id]

    def listener_count(self, session_id: int) -> int:
        return len(self._listeners.get(session_id, ()))

    def publish(self, session_id: int, kind: str, payload: Any = None) -> int:
        """Deliver an event to every listener of the session.

        Returns:
            Number of listeners the event was queued for.
        """
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind: {kind!r}")
        event = Event(kind=kind, session_id=session_id, payload=payload)
        delivered = 0
        for queue in list(self._listeners.get(session_id, ())):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Dropping %s event for session %d: listener queue full", kind, session_id)
        return delivered
