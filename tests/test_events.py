"""Tests for math_council/events.py."""

import asyncio
import logging

import pytest

from math_council.events import DEBATE_COMPLETE, NEW_MESSAGE, TYPING, Event, EventBus


async def test_publish_reaches_every_listener_of_the_session(bus):
    first = bus.subscribe(1)
    second = bus.subscribe(1)

    delivered = bus.publish(1, TYPING, "Dr. Chaos")

    assert delivered == 2
    assert first.get_nowait() == Event(kind=TYPING, session_id=1, payload="Dr. Chaos")
    assert second.get_nowait().payload == "Dr. Chaos"


async def test_publish_without_listeners_is_a_no_op(bus):
    assert bus.publish(5, DEBATE_COMPLETE) == 0


async def test_unsubscribe_stops_delivery(bus):
    queue = bus.subscribe(1)
    bus.unsubscribe(1, queue)
    bus.unsubscribe(1, queue)

    assert bus.publish(1, NEW_MESSAGE, "hi") == 0
    assert queue.empty()
    assert bus.listener_count(1) == 0


async def test_full_listener_queue_drops_event(caplog):
    bus = EventBus(max_queue_size=1)
    slow = bus.subscribe(1)
    bus.publish(1, TYPING, "Professor Euclid")

    with caplog.at_level(logging.WARNING):
        delivered = bus.publish(1, TYPING, "Dr. Algorithm")

    assert delivered == 0
    assert slow.qsize() == 1
    assert any("listener queue full" in msg for msg in caplog.messages)


async def test_unknown_event_kind_is_rejected(bus):
    with pytest.raises(ValueError, match="Unknown event kind"):
        bus.publish(1, "applause")


async def test_consume_blocks_until_published(bus):
    queue = bus.subscribe(3)
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(queue.get(), timeout=0.05)
