"""OpenRouter provider using openai SDK (OpenAI-compatible API)."""

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from math_council.providers.openai_provider import OpenAIProvider

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"

# OpenRouter attributes traffic to the calling app through these headers
_APP_HEADERS = {
    "HTTP-Referer": "https://the-math-council.com",
    "X-Title": "The Math Council",
}


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter provider via OpenAI-compatible API."""

    def __init__(self, config: ModelConfig) -> None:
        if not config.base_url:
            config.base_url = DEFAULT_BASE_URL
        super().__init__(config)

    def _build_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=api_key,
            base_url=self._config.base_url,
            default_headers=_APP_HEADERS,
        )
