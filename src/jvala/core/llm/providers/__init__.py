"""LLM provider implementations."""

from jvala.core.llm.providers.anthropic import AnthropicProvider
from jvala.core.llm.providers.mock import MockProvider
from jvala.core.llm.providers.openai import OpenAIProvider

__all__ = ["AnthropicProvider", "MockProvider", "OpenAIProvider"]
