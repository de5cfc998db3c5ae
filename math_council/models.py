"""Pure dataclasses for the Math Council debate engine. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Personality:
    name: str
    personality: str       # style descriptor, e.g. "Rigorous and methodical"
    specialty: str
    description: str
    traits: tuple[str, ...] = ()


@dataclass(frozen=True)
class SessionRecord:
    id: int
    problem: str
    difficulty: str        # "easy", "medium", "hard"
    created_at: datetime


@dataclass
class Participant:
    id: int
    session_id: int
    name: str              # snapshotted from the Personality at join time
    personality: str
    specialty: str
    is_active: bool = True


@dataclass(frozen=True)
class Message:
    id: int
    session_id: int
    participant_id: int
    content: str
    created_at: datetime
    name: str              # author's snapshotted fields, joined in by the store
    personality: str = ""
    specialty: str = ""


@dataclass
class SessionState:
    """Live in-memory mirror of one session."""

    session: SessionRecord
    participants: list[Participant] = field(default_factory=list)
    current_speaker_index: int = 0
    round_count: int = 0
    max_rounds: int = 0
    is_paused: bool = False
    is_complete: bool = False
    history: list[Message] = field(default_factory=list)


@dataclass(frozen=True)
class SessionStatus:
    id: int
    problem: str
    difficulty: str
    participants: tuple[Participant, ...]
    is_paused: bool
    is_complete: bool
    round_count: int
    max_rounds: int
    current_speaker: Participant | None
    created_at: datetime


@dataclass
class ModelResponse:
    provider: str          # "openrouter", "openai", "claude", "gemini"
    model: str             # actual model string used
    round_number: int
    content: str
    latency_sec: float
    token_count: int | None
