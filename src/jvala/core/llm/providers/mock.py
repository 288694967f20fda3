"""Mock LLM provider for testing."""

from __future__ import annotations

from jvala.core.llm.provider import ProviderResponse

UNCLASSIFIED_JSON = '{"entry_type": null}'


class MockProvider:
    """Mock provider for testing — returns a canned JSON response.

    Nothing leaves the process, so ``discloses_data`` is False.
    """

    name = "mock"
    discloses_data = False

    def __init__(self, response_content: str = UNCLASSIFIED_JSON) -> None:
        self.response_content = response_content
        self.last_system_message: str = ""
        self.last_user_message: str = ""
        self.call_count: int = 0

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 512,
        temperature: float = 0.0,
    ) -> ProviderResponse:
        self.last_system_message = system_message
        self.last_user_message = user_message
        self.call_count += 1
        return ProviderResponse(
            content=self.response_content,
            input_tokens=len(system_message.split()) + len(user_message.split()),
            output_tokens=len(self.response_content.split()),
            model="mock",
            latency_ms=0.0,
        )
