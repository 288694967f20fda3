"""Anthropic Claude provider."""

from __future__ import annotations

import time

from jvala.core.llm.provider import DEFAULT_ANTHROPIC_MODEL, ProviderError, ProviderResponse


class AnthropicProvider:
    """Claude provider using the Anthropic SDK."""

    name = "anthropic"
    discloses_data = True

    def __init__(self, api_key: str, model: str = DEFAULT_ANTHROPIC_MODEL) -> None:
        import anthropic

        self._errors = (anthropic.APIError,)
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 512,
        temperature: float = 0.0,
    ) -> ProviderResponse:
        start = time.monotonic()
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_message,
                messages=[{"role": "user", "content": user_message}],
            )
        except self._errors as exc:
            raise ProviderError(f"Anthropic request failed: {type(exc).__name__}") from exc
        elapsed_ms = (time.monotonic() - start) * 1000

        content = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return ProviderResponse(
            content=content,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=self.model,
            latency_ms=elapsed_ms,
        )
