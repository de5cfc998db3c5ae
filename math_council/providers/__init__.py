"""Text-generation backends, keyed by the ``sdk`` field of a model config."""

from math_council.providers.anthropic import AnthropicProvider
from math_council.providers.base import AIProvider, ProviderError, SDKProvider
from math_council.providers.gemini import GeminiProvider
from math_council.providers.openai_provider import OpenAIProvider
from math_council.providers.openrouter import OpenRouterProvider

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openrouter": OpenRouterProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}

__all__ = [
    "AIProvider",
    "AnthropicProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "PROVIDER_CLASSES",
    "ProviderError",
    "SDKProvider",
]
