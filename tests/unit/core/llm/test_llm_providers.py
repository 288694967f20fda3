"""Tests for the LLM provider factory and mock provider."""

from __future__ import annotations

import pytest
from conftest import run_async

from jvala.core.llm.provider import LLMProvider, create_provider
from jvala.core.llm.providers.mock import UNCLASSIFIED_JSON, MockProvider


class TestCreateProvider:
    def test_mock(self):
        provider = create_provider("mock")
        assert isinstance(provider, MockProvider)
        assert provider.discloses_data is False

    def test_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            create_provider("llama")

    def test_anthropic_discloses(self):
        provider = create_provider("anthropic", api_key="sk-test")
        assert provider.name == "anthropic"
        assert provider.discloses_data is True

    def test_openai_default_model(self):
        provider = create_provider("openai", api_key="sk-test")
        assert provider.name == "openai"
        assert provider.model == "gpt-4o"


class TestMockProvider:
    def test_satisfies_protocol(self):
        assert isinstance(MockProvider(), LLMProvider)

    def test_default_response_is_unclassified(self):
        provider = MockProvider()
        response = run_async(provider.generate("system", "my knee hurts"))
        assert response.content == UNCLASSIFIED_JSON
        assert provider.call_count == 1
        assert provider.last_user_message == "my knee hurts"

    def test_custom_response(self):
        provider = MockProvider('{"entry_type": "flare"}')
        response = run_async(provider.generate("s", "u"))
        assert response.content == '{"entry_type": "flare"}'
        assert response.model == "mock"
