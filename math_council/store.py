"""Relational transcript store: sessions, participants and messages via SQLAlchemy.

Every public method runs in its own transaction and returns plain dataclasses
from ``math_council.models``; ORM rows never leave this module. Database
failures surface as ``StoreError``.
"""

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TypeVar

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, create_engine, delete, event, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from math_council.errors import StoreError
from math_council.models import Message, Participant, Personality, SessionRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class SessionRow(Base):
    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    problem: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ParticipantRow(Base):
    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    personality: Mapped[str] = mapped_column(Text, nullable=False)
    specialty: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class MessageRow(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_id: Mapped[int] = mapped_column(
        ForeignKey("participants.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _to_session(row: SessionRow) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        problem=row.problem,
        difficulty=row.difficulty,
        created_at=_as_utc(row.created_at),
    )


def _to_participant(row: ParticipantRow) -> Participant:
    return Participant(
        id=row.id,
        session_id=row.session_id,
        name=row.name,
        personality=row.personality,
        specialty=row.specialty,
        is_active=row.is_active,
    )


def _to_message(row: MessageRow, author: ParticipantRow) -> Message:
    return Message(
        id=row.id,
        session_id=row.session_id,
        participant_id=row.participant_id,
        content=row.content,
        created_at=_as_utc(row.created_at),
        name=author.name,
        personality=author.personality,
        specialty=author.specialty,
    )


def _participant_row(session_id: int, personality: Personality) -> ParticipantRow:
    return ParticipantRow(
        session_id=session_id,
        name=personality.name,
        personality=personality.personality,
        specialty=personality.specialty,
        is_active=True,
    )


def _messages_query(session_id: int):
    return (
        select(MessageRow, ParticipantRow)
        .join(ParticipantRow, MessageRow.participant_id == ParticipantRow.id)
        .where(MessageRow.session_id == session_id)
    )


class TranscriptStore:
    """Durable record of debate sessions, their rosters and transcripts."""

    def __init__(self, url: str = "sqlite:///math_council.db", echo: bool = False) -> None:
        self._engine: Engine = create_engine(url, echo=echo)
        if self._engine.dialect.name == "sqlite":
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False)

    def initialize(self) -> None:
        """Create the tables if they do not exist yet."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to initialize database: {exc}") from exc
        logger.debug("Database schema ready at %s", self._engine.url)

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Session]:
        try:
            with self._session_factory() as db, db.begin():
                yield db
        except SQLAlchemyError as exc:
            logger.error("Store failure while trying to %s: %s", action, exc)
            raise StoreError(f"Failed to {action}: {exc}") from exc

    def _run(self, action: str, fn: Callable[[Session], T]) -> T:
        with self._transaction(action) as db:
            return fn(db)

    # --- sessions ---

    def create_session_with_roster(
        self,
        problem: str,
        difficulty: str,
        personalities: Sequence[Personality],
    ) -> tuple[SessionRecord, list[Participant]]:
        """Persist a session and its opening roster in one transaction.

        Either the session and every participant are written, or nothing is.
        """
        def _create(db: Session) -> tuple[SessionRecord, list[Participant]]:
            session_row = SessionRow(problem=problem, difficulty=difficulty)
            db.add(session_row)
            db.flush()
            rows = [_participant_row(session_row.id, p) for p in personalities]
            db.add_all(rows)
            db.flush()
            return _to_session(session_row), [_to_participant(r) for r in rows]

        return self._run("create session", _create)

    def create_session(self, problem: str, difficulty: str) -> SessionRecord:
        def _create(db: Session) -> SessionRecord:
            row = SessionRow(problem=problem, difficulty=difficulty)
            db.add(row)
            db.flush()
            return _to_session(row)

        return self._run("create session", _create)

    def get_session(self, session_id: int) -> SessionRecord | None:
        def _get(db: Session) -> SessionRecord | None:
            row = db.get(SessionRow, session_id)
            return _to_session(row) if row is not None else None

        return self._run("fetch session", _get)

    def list_sessions(self) -> list[SessionRecord]:
        """All sessions, most recently created first."""
        def _list(db: Session) -> list[SessionRecord]:
            rows = db.scalars(select(SessionRow).order_by(SessionRow.created_at.desc(), SessionRow.id.desc()))
            return [_to_session(r) for r in rows]

        return self._run("list sessions", _list)

    def delete_session(self, session_id: int) -> None:
        self._run("delete session", lambda db: db.execute(delete(SessionRow).where(SessionRow.id == session_id)))

    # --- participants ---

    def create_participant(self, session_id: int, personality: Personality) -> Participant:
        """Join a personality to a session, snapshotting its descriptive fields."""
        def _create(db: Session) -> Participant:
            row = _participant_row(session_id, personality)
            db.add(row)
            db.flush()
            return _to_participant(row)

        return self._run("create participant", _create)

    def get_participant(self, participant_id: int) -> Participant | None:
        def _get(db: Session) -> Participant | None:
            row = db.get(ParticipantRow, participant_id)
            return _to_participant(row) if row is not None else None

        return self._run("fetch participant", _get)

    def get_active_participants(self, session_id: int) -> list[Participant]:
        """Active roster in join order."""
        def _list(db: Session) -> list[Participant]:
            rows = db.scalars(
                select(ParticipantRow)
                .where(ParticipantRow.session_id == session_id, ParticipantRow.is_active.is_(True))
                .order_by(ParticipantRow.id)
            )
            return [_to_participant(r) for r in rows]

        return self._run("fetch participants", _list)

    def deactivate_participant(self, participant_id: int) -> None:
        self._run(
            "deactivate participant",
            lambda db: db.execute(
                update(ParticipantRow).where(ParticipantRow.id == participant_id).values(is_active=False)
            ),
        )

    def delete_participants(self, session_id: int) -> None:
        """Hard-delete every participant of a session, inactive ones included."""
        self._run(
            "delete participants",
            lambda db: db.execute(delete(ParticipantRow).where(ParticipantRow.session_id == session_id)),
        )

    # --- messages ---

    def create_message(self, session_id: int, participant_id: int, content: str) -> Message:
        def _create(db: Session) -> Message:
            author = db.get(ParticipantRow, participant_id)
            if author is None:
                raise StoreError(f"Participant {participant_id} does not exist")
            row = MessageRow(session_id=session_id, participant_id=participant_id, content=content)
            db.add(row)
            db.flush()
            return _to_message(row, author)

        return self._run("create message", _create)

    def get_messages(self, session_id: int) -> list[Message]:
        """Full transcript, oldest first."""
        def _list(db: Session) -> list[Message]:
            rows = db.execute(_messages_query(session_id).order_by(MessageRow.created_at, MessageRow.id))
            return [_to_message(m, p) for m, p in rows]

        return self._run("fetch messages", _list)

    def get_last_message(self, session_id: int) -> Message | None:
        def _last(db: Session) -> Message | None:
            row = db.execute(
                _messages_query(session_id).order_by(MessageRow.created_at.desc(), MessageRow.id.desc()).limit(1)
            ).first()
            return _to_message(*row) if row is not None else None

        return self._run("fetch last message", _last)

    def count_messages(self, session_id: int) -> int:
        def _count(db: Session) -> int:
            return db.scalar(select(func.count()).select_from(MessageRow).where(MessageRow.session_id == session_id)) or 0

        return self._run("count messages", _count)

    def delete_messages(self, session_id: int) -> None:
        self._run(
            "delete messages",
            lambda db: db.execute(delete(MessageRow).where(MessageRow.session_id == session_id)),
        )
