"""Gemini provider using google-genai SDK with native async."""

from google import genai
from google.genai import types as genai_types

from math_council.providers.base import ProviderError, SDKProvider


class GeminiProvider(SDKProvider):
    def _build_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    async def _complete(self, system: str, prompt: str) -> tuple[str, int | None]:
        response = await self._client.aio.models.generate_content(
            model=self._config.model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=system,
                max_output_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
            ),
        )
        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        token_count = response.usage_metadata.total_token_count if response.usage_metadata else None
        return response.text, token_count
