"""Turn text generation: live backend call with a canned in-character fallback."""

import logging
import random
from collections.abc import Sequence

from config.config_loader import PromptsConfig
from math_council.errors import NotFoundError
from math_council.models import Message, Participant, Personality
from math_council.personalities import get_personality, personality_prompt
from math_council.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)

_SIMULATED_RESPONSES: dict[str, tuple[str, ...]] = {
    "Professor Euclid": (
        "From a geometric perspective, I believe we should approach this systematically with rigorous proof.",
        "Let me construct a formal argument using classical mathematical principles.",
        "The geometric intuition here suggests we need to establish clear axioms first.",
    ),
    "Dr. Chaos": (
        "Looking at this probabilistically, I see interesting patterns emerging.",
        "From a statistical viewpoint, we should consider the distribution of possible outcomes.",
        "The randomness in this problem reveals some fascinating underlying structures.",
    ),
    "Ms. Approximation": (
        "For practical purposes, let's start with a reasonable estimation.",
        "I'd suggest we approximate this first, then refine our approach.",
        "In real-world terms, we can get a good approximation quickly.",
    ),
    "The Trickster": (
        "Hmm, but what if we consider the opposite approach?",
        "I'm going to challenge the conventional wisdom here...",
        "Wait, I think everyone is missing something obvious!",
    ),
    "The Philosopher": (
        "This raises deeper questions about the nature of mathematical truth.",
        "Let's contemplate the fundamental assumptions underlying this problem.",
        "What does this tell us about the relationship between form and content?",
    ),
    "Dr. Algorithm": (
        "Let me break this down into clear computational steps.",
        "We can solve this efficiently using a systematic algorithm.",
        "The computational complexity here is quite interesting.",
    ),
    "Professor Infinity": (
        "In the abstract realm, this problem takes on infinite dimensions.",
        "Let's consider the theoretical implications of this mathematical structure.",
        "The infinite possibilities here are quite fascinating.",
    ),
}

_DEFAULT_VOICE = "Professor Euclid"


def simulated_response(speaker_name: str, rng: random.Random | None = None) -> str:
    """Return a random canned line in the speaker's voice."""
    lines = _SIMULATED_RESPONSES.get(speaker_name, _SIMULATED_RESPONSES[_DEFAULT_VOICE])
    return (rng or random).choice(lines)


def _profile_for(participant: Participant) -> Personality:
    """Full catalog profile for a participant, or one rebuilt from its snapshot."""
    try:
        return get_personality(participant.name)
    except NotFoundError:
        return Personality(
            name=participant.name,
            personality=participant.personality,
            specialty=participant.specialty,
            description="",
        )


def _format_debate(transcript: Sequence[Message]) -> str:
    if not transcript:
        return ""
    lines = [f"{m.name}: {m.content}" for m in transcript]
    return "Current debate:\n" + "\n".join(lines) + "\n\n"


class ResponseGenerator:
    """Produces the next speaker's text for the orchestrator.

    ``generate`` never raises: backend failures are logged and replaced by
    a simulated line, so a turn always yields text.
    """

    def __init__(
        self,
        provider: AIProvider | None,
        prompts: PromptsConfig,
        rng: random.Random | None = None,
    ) -> None:
        self._provider = provider
        self._prompts = prompts
        self._rng = rng or random.Random()

    @property
    def is_simulated(self) -> bool:
        return self._provider is None

    def build_prompts(
        self,
        participant: Participant,
        problem: str,
        transcript: Sequence[Message],
        difficulty: str,
    ) -> tuple[str, str]:
        """Return (system, user) prompts for the speaker's turn."""
        system = self._prompts.system.format(
            character=personality_prompt(_profile_for(participant)),
            difficulty=difficulty,
        )
        user = self._prompts.user.format(
            problem=problem,
            debate=_format_debate(transcript),
        )
        return system, user

    async def generate(
        self,
        participant: Participant,
        problem: str,
        transcript: Sequence[Message],
        difficulty: str,
    ) -> str:
        if self._provider is None:
            return simulated_response(participant.name, self._rng)

        system, user = self.build_prompts(participant, problem, transcript, difficulty)
        try:
            response = await self._provider.generate(system, user, len(transcript) + 1)
        except ProviderError as exc:
            logger.warning("Provider failed for %s, using simulated response: %s", participant.name, exc)
            return simulated_response(participant.name, self._rng)
        except Exception as exc:
            logger.warning(
                "Provider %s unexpected failure for %s, using simulated response: %s",
                self._provider.name(), participant.name, exc,
            )
            return simulated_response(participant.name, self._rng)

        if not response.content.strip():
            logger.warning("Provider %s returned empty text for %s", self._provider.name(), participant.name)
            return simulated_response(participant.name, self._rng)
        return response.content
