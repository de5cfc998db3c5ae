"""Shared pytest fixtures."""

import random
from collections.abc import Iterator, Sequence
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    CacheConfig,
    DatabaseConfig,
    DefaultsConfig,
    InboxConfig,
    ModelConfig,
    PromptsConfig,
)
from math_council.events import EventBus
from math_council.generator import ResponseGenerator
from math_council.models import Message, ModelResponse, Participant
from math_council.orchestrator import DebateOrchestrator
from math_council.personalities import get_personality
from math_council.providers.base import AIProvider
from math_council.store import TranscriptStore


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=300,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        system="{character}\nDifficulty: {difficulty}",
        user="Mathematical Problem: {problem}\n\n{debate}Your response:",
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        difficulty="medium",
        members=3,
        min_members=3,
        max_members=7,
        provider="openrouter",
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def sample_app_config(
    tmp_path: Path,
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    model_cfg = ModelConfig(
        name="openrouter",
        sdk="openrouter",
        model="openai/gpt-3.5-turbo",
        api_key_env="TEST_OPENROUTER_KEY",
        timeout_sec=60,
        max_tokens=300,
        base_url="https://openrouter.ai/api/v1",
    )
    return AppConfig(
        defaults=sample_defaults_config,
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'council.db'}"),
        cache=CacheConfig(max_sessions=16, ttl_sec=600),
        inbox=InboxConfig(dir=tmp_path / "inbox", archive_dir=tmp_path / "inbox" / "archive"),
        models={"openrouter": model_cfg},
        prompts=sample_prompts_config,
        available_providers=set(),
    )


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                round_number=1,
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, system: str, prompt: str, round_number: int) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(
            provider=self._name,
            model="mock-model",
            round_number=round_number,
            content=self._response_content,
            latency_sec=0.1,
            token_count=10,
        )


class ScriptedGenerator:
    """Response generator double that records who was asked to speak."""

    def __init__(self) -> None:
        self.speakers: list[str] = []
        self.transcript_lengths: list[int] = []

    async def generate(
        self,
        participant: Participant,
        problem: str,
        transcript: Sequence[Message],
        difficulty: str,
    ) -> str:
        self.speakers.append(participant.name)
        self.transcript_lengths.append(len(transcript))
        return f"{participant.name} on {problem} (turn {len(transcript) + 1})"


@pytest.fixture
def store(tmp_path: Path) -> Iterator[TranscriptStore]:
    s = TranscriptStore(f"sqlite:///{tmp_path / 'council.db'}")
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def euclid():
    return get_personality("Professor Euclid")


@pytest.fixture
def scripted_generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def orchestrator(store: TranscriptStore, scripted_generator: ScriptedGenerator, bus: EventBus) -> DebateOrchestrator:
    return DebateOrchestrator(store, scripted_generator, bus=bus, rng=random.Random(7))


@pytest.fixture
def simulated_generator(sample_prompts_config: PromptsConfig) -> ResponseGenerator:
    return ResponseGenerator(None, sample_prompts_config, rng=random.Random(3))
