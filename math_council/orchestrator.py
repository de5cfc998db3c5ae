"""Debate orchestration: turn rotation, session lifecycle and roster edits.

The orchestrator is the single in-process authority for every session it
serves. It keeps a live ``SessionState`` mirror per session in a bounded
cache, rebuilds mirrors from the transcript store on a cache miss, and
serialises turn production and roster edits per session with an
``asyncio.Lock``.
"""

import asyncio
import logging
import random
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from math_council.cache import SessionCache
from math_council.errors import InvalidArgumentError, NotFoundError
from math_council.events import DEBATE_COMPLETE, NEW_MESSAGE, SESSION_UPDATED, TYPING, EventBus
from math_council.generator import ResponseGenerator, simulated_response
from math_council.models import Message, Participant, SessionRecord, SessionState, SessionStatus
from math_council.personalities import get_personality, sample_personalities
from math_council.store import TranscriptStore

logger = logging.getLogger(__name__)

# Every participant speaks this many times before a debate auto-completes
TURNS_PER_PARTICIPANT = 2


def _round_ceiling(roster_size: int) -> int:
    return roster_size * TURNS_PER_PARTICIPANT


def _is_active(state: SessionState) -> bool:
    return not state.is_complete and not state.is_paused and bool(state.participants)


def _snapshot(state: SessionState) -> SessionStatus:
    speaker = state.participants[state.current_speaker_index] if state.participants else None
    return SessionStatus(
        id=state.session.id,
        problem=state.session.problem,
        difficulty=state.session.difficulty,
        participants=tuple(state.participants),
        is_paused=state.is_paused,
        is_complete=state.is_complete,
        round_count=state.round_count,
        max_rounds=state.max_rounds,
        current_speaker=speaker,
        created_at=state.session.created_at,
    )


class DebateOrchestrator:
    """Runs debates between personalities over a shared transcript store."""

    def __init__(
        self,
        store: TranscriptStore,
        generator: ResponseGenerator,
        bus: EventBus | None = None,
        min_members: int = 3,
        max_members: int = 7,
        max_sessions: int = 128,
        ttl_sec: float = 3600.0,
        rng: random.Random | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._store = store
        self._generator = generator
        self.bus = bus or EventBus()
        self._min_members = min_members
        self._max_members = max_members
        self._rng = rng or random.Random()
        self._locks: dict[int, asyncio.Lock] = {}
        self._pending: dict[int, int] = {}
        cache_kwargs = {"clock": clock} if clock is not None else {}
        self._cache = SessionCache(
            max_sessions, ttl_sec, on_evict=self._drop_lock, is_pinned=self._is_busy, **cache_kwargs
        )

    def _lock_for(self, session_id: int) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    @asynccontextmanager
    async def _exclusive(self, session_id: int) -> AsyncIterator[None]:
        """Hold the session's lock. Holders and waiters pin the session in the cache."""
        self._pending[session_id] = self._pending.get(session_id, 0) + 1
        try:
            async with self._lock_for(session_id):
                yield
        finally:
            self._pending[session_id] -= 1
            if not self._pending[session_id]:
                del self._pending[session_id]

    def _is_busy(self, session_id: int) -> bool:
        return session_id in self._pending

    def _drop_lock(self, session_id: int) -> None:
        if not self._is_busy(session_id):
            self._locks.pop(session_id, None)

    # --- lifecycle ---

    async def create_session(
        self,
        problem: str,
        difficulty: str,
        member_count: int,
    ) -> tuple[int, list[Participant]]:
        """Create a session with ``member_count`` randomly drawn personalities.

        Returns:
            (session_id, roster in speaking order)

        Raises:
            InvalidArgumentError: Empty problem or member count out of bounds.
            StoreError: If persisting the session or its roster fails.
        """
        if not problem or not problem.strip():
            raise InvalidArgumentError("Problem statement must not be empty")
        if not self._min_members <= member_count <= self._max_members:
            raise InvalidArgumentError(
                f"Member count must be between {self._min_members} and {self._max_members}, got {member_count}"
            )

        record, participants = self._store.create_session_with_roster(
            problem, difficulty, sample_personalities(member_count, self._rng)
        )

        state = SessionState(
            session=record,
            participants=participants,
            current_speaker_index=0,
            round_count=0,
            max_rounds=_round_ceiling(len(participants)),
        )
        self._cache.put(record.id, state)

        logger.info(
            "Created session %d (%s) with %d participants: %s",
            record.id, difficulty, len(participants), ", ".join(p.name for p in participants),
        )
        return record.id, list(participants)

    async def get_session(self, session_id: int) -> SessionState:
        """Return the live mirror, rebuilding it from the store on a cache miss.

        Raises:
            NotFoundError: If the session does not exist.
        """
        state = self._cache.get(session_id)
        if state is not None:
            return state

        state = self._rehydrate(session_id)
        self._cache.put(session_id, state)
        return state

    def _rehydrate(self, session_id: int) -> SessionState:
        record = self._store.get_session(session_id)
        if record is None:
            raise NotFoundError(f"Session {session_id} not found")

        participants = self._store.get_active_participants(session_id)
        history = self._store.get_messages(session_id)
        message_count = len(history)
        max_rounds = _round_ceiling(len(participants))

        logger.debug(
            "Rehydrated session %d: %d participants, %d messages",
            session_id, len(participants), message_count,
        )
        return SessionState(
            session=record,
            participants=participants,
            current_speaker_index=message_count % len(participants) if participants else 0,
            round_count=message_count,
            max_rounds=max_rounds,
            is_paused=False,
            is_complete=message_count >= max_rounds,
            history=history,
        )

    async def get_status(self, session_id: int) -> SessionStatus:
        return _snapshot(await self.get_session(session_id))

    def list_sessions(self) -> list[SessionRecord]:
        return self._store.list_sessions()

    async def get_transcript(self, session_id: int) -> list[Message]:
        await self.get_session(session_id)
        return self._store.get_messages(session_id)

    async def delete_session(self, session_id: int) -> None:
        """Forget the session and remove all of its records. Unknown ids are ignored."""
        async with self._exclusive(session_id):
            self._cache.pop(session_id)
            self._store.delete_messages(session_id)
            self._store.delete_participants(session_id)
            self._store.delete_session(session_id)
        self._drop_lock(session_id)
        logger.info("Deleted session %d", session_id)

    # --- turns ---

    async def generate_next_response(self, session_id: int) -> Message | None:
        """Produce, persist and broadcast the next speaker's message.

        Returns None when the debate is not active (complete, paused, or
        without participants).

        Raises:
            NotFoundError: If the session does not exist.
            StoreError: If the message cannot be persisted.
        """
        async with self._exclusive(session_id):
            state = await self.get_session(session_id)
            if not _is_active(state):
                logger.debug("Session %d is not active, no turn produced", session_id)
                return None

            speaker = state.participants[state.current_speaker_index]
            self.bus.publish(session_id, TYPING, speaker.name)

            content = await self._generate_text(state, speaker)
            message = self._store.create_message(session_id, speaker.id, content)

            was_complete = state.is_complete
            state.history.append(message)
            state.round_count += 1
            state.current_speaker_index = (state.current_speaker_index + 1) % len(state.participants)
            if state.round_count >= state.max_rounds:
                state.is_complete = True

        # unpinned now; refreshes recency and trims any surplus built up meanwhile
        self._cache.put(session_id, state)

        logger.info(
            "Session %d turn %d/%d: %s",
            session_id, state.round_count, state.max_rounds, speaker.name,
        )
        self.bus.publish(session_id, NEW_MESSAGE, message)
        if state.is_complete and not was_complete:
            logger.info("Session %d debate complete", session_id)
            self.bus.publish(session_id, DEBATE_COMPLETE)
        return message

    async def _generate_text(self, state: SessionState, speaker: Participant) -> str:
        try:
            return await self._generator.generate(
                speaker,
                state.session.problem,
                list(state.history),
                state.session.difficulty,
            )
        except Exception as exc:
            logger.warning(
                "Response generator failed for %s in session %d, using simulated response: %s",
                speaker.name, state.session.id, exc,
            )
            return simulated_response(speaker.name, self._rng)

    async def run_debate(
        self,
        session_id: int,
        max_turns: int | None = None,
        on_message: Callable[[Message], None] | None = None,
    ) -> list[Message]:
        """Produce turns until the debate stops being active or ``max_turns`` is hit.

        Args:
            session_id: The session to advance.
            max_turns: Optional cap on turns produced by this call.
            on_message: Optional callback invoked after each persisted message.

        Returns:
            Messages produced by this call, in order.
        """
        produced: list[Message] = []
        while max_turns is None or len(produced) < max_turns:
            message = await self.generate_next_response(session_id)
            if message is None:
                break
            produced.append(message)
            if on_message:
                on_message(message)
        return produced

    # --- roster and flow control ---

    async def pause_session(self, session_id: int) -> SessionStatus:
        state = await self.get_session(session_id)
        state.is_paused = True
        return self._publish_update(state)

    async def resume_session(self, session_id: int) -> SessionStatus:
        state = await self.get_session(session_id)
        state.is_paused = False
        return self._publish_update(state)

    async def force_complete(self, session_id: int) -> SessionStatus:
        """End the debate now, regardless of how many turns remain."""
        state = await self.get_session(session_id)
        state.is_complete = True
        logger.info("Session %d force-completed at turn %d/%d", session_id, state.round_count, state.max_rounds)
        self.bus.publish(session_id, DEBATE_COMPLETE)
        return _snapshot(state)

    async def kick_participant(self, session_id: int, participant_id: int) -> SessionStatus:
        """Deactivate a participant and drop it from the speaking order.

        If the turn pointer falls off the end of the shortened roster it
        restarts at 0. The round counter is kept, so the debate completes
        immediately when it already meets the new ceiling.

        Raises:
            NotFoundError: Unknown session, or a participant not in this session.
        """
        async with self._exclusive(session_id):
            state = await self.get_session(session_id)
            participant = self._store.get_participant(participant_id)
            if participant is None or participant.session_id != session_id:
                raise NotFoundError(f"Participant {participant_id} not found in session {session_id}")

            self._store.deactivate_participant(participant_id)

            # TODO: clamp to the new last index instead of restarting at 0 once
            # callers agree on who should speak after a kick
            state.participants = [p for p in state.participants if p.id != participant_id]
            if state.current_speaker_index >= len(state.participants):
                state.current_speaker_index = 0
            state.max_rounds = _round_ceiling(len(state.participants))

            was_complete = state.is_complete
            if state.round_count >= state.max_rounds:
                state.is_complete = True

        logger.info(
            "Kicked %s from session %d, %d participants remain",
            participant.name, session_id, len(state.participants),
        )
        status = self._publish_update(state)
        if state.is_complete and not was_complete:
            self.bus.publish(session_id, DEBATE_COMPLETE)
        return status

    async def add_participant(self, session_id: int, personality_name: str) -> Participant:
        """Join a catalog personality to the end of the speaking order.

        Raises:
            InvalidArgumentError: If the personality name is not in the catalog.
            NotFoundError: If the session does not exist.
        """
        try:
            personality = get_personality(personality_name)
        except NotFoundError as exc:
            raise InvalidArgumentError(str(exc)) from exc

        async with self._exclusive(session_id):
            state = await self.get_session(session_id)
            participant = self._store.create_participant(session_id, personality)
            state.participants.append(participant)
            state.max_rounds = _round_ceiling(len(state.participants))

        logger.info("Added %s to session %d", participant.name, session_id)
        self._publish_update(state)
        return participant

    def _publish_update(self, state: SessionState) -> SessionStatus:
        status = _snapshot(state)
        self.bus.publish(state.session.id, SESSION_UPDATED, status)
        return status
