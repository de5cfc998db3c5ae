"""OpenAI chat-completions provider using openai SDK with native async."""

from openai import AsyncOpenAI

from math_council.providers.base import ProviderError, SDKProvider


class OpenAIProvider(SDKProvider):
    """OpenAI chat-completions provider via openai SDK."""

    def _build_client(self, api_key: str) -> AsyncOpenAI:
        if self._config.base_url:
            return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)
        return AsyncOpenAI(api_key=api_key)

    async def _complete(self, system: str, prompt: str) -> tuple[str, int | None]:
        response = await self._client.chat.completions.create(
            model=self._config.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
        )

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        token_count = response.usage.total_tokens if response.usage else None
        return choice.message.content, token_count
