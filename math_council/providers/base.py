"""Abstract base for the text-generation backends that voice the council."""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any

from config.config_loader import ModelConfig
from math_council.models import ModelResponse

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'openrouter', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(self, system: str, prompt: str, round_number: int) -> ModelResponse:
        """Generate a response for the given prompt.

        Args:
            system: The system prompt (speaker's character sheet and rules).
            prompt: The user prompt (problem plus debate so far).
            round_number: The turn number within the session (1-indexed).

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...


class SDKProvider(AIProvider):
    """Provider backed by a vendor SDK client configured from a ModelConfig.

    Subclasses build the client and perform one completion; this class
    resolves the API key, applies the timeout, measures latency and turns
    every failure into ProviderError.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = self._build_client(self._api_key())

    def _api_key(self) -> str:
        api_key = os.environ.get(self._config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(self._config.name, f"Missing API key: {self._config.api_key_env}")
        return api_key

    @abstractmethod
    def _build_client(self, api_key: str) -> Any:
        ...

    @abstractmethod
    async def _complete(self, system: str, prompt: str) -> tuple[str, int | None]:
        """Run one completion; return (text, total token count if reported)."""
        ...

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(self, system: str, prompt: str, round_number: int) -> ModelResponse:
        start = time.monotonic()
        try:
            text, token_count = await asyncio.wait_for(
                self._complete(system, prompt),
                timeout=self._config.timeout_sec,
            )
        except ProviderError:
            raise
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start
        logger.info(
            "%s turn %d: %.2fs, %s tokens",
            self._config.name,
            round_number,
            latency,
            token_count,
        )

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            round_number=round_number,
            content=text.strip(),
            latency_sec=latency,
            token_count=token_count,
        )
