"""Tests for note classification (LLM-backed and keyword rules)."""

from __future__ import annotations

import pytest
from conftest import run_async

from jvala.core.llm.provider import ProviderError
from jvala.core.llm.providers.mock import MockProvider
from jvala.domains.flares.classification.note_classifier import (
    MAX_NOTE_CHARS,
    KeywordNoteClassifier,
    LLMNoteClassifier,
    NoteClassifier,
    PartialEntry,
    Unclassified,
    create_note_classifier,
    partial_entry_from_dict,
)


class _FailingProvider:
    name = "anthropic"
    discloses_data = True

    async def generate(self, system_message, user_message, max_tokens=512, temperature=0.0):
        raise ProviderError("Anthropic request failed: APIConnectionError")


@pytest.fixture
def keyword():
    return KeywordNoteClassifier()


class TestPartialEntryFromDict:
    def test_valid_flare(self):
        result = partial_entry_from_dict(
            {"entry_type": "flare", "severity": "severe", "symptoms": ["Migraine", "migraine"]},
            "anthropic",
        )
        assert isinstance(result, PartialEntry)
        assert result.severity == "severe"
        assert result.symptoms == ["Migraine"]
        assert result.source == "anthropic"

    def test_invalid_fields_dropped(self):
        result = partial_entry_from_dict(
            {"entry_type": "medication", "severity": "severe", "energy_level": "low"}, "x"
        )
        assert result.severity is None
        assert result.energy_level is None

    def test_unknown_type(self):
        result = partial_entry_from_dict({"entry_type": "sneeze"}, "x")
        assert isinstance(result, Unclassified)

    def test_not_an_object(self):
        assert isinstance(partial_entry_from_dict(["flare"], "x"), Unclassified)


class TestLLMNoteClassifier:
    def test_parses_reply(self):
        provider = MockProvider('{"entry_type": "energy", "energy_level": "very-low"}')
        result = run_async(LLMNoteClassifier(provider).classify("completely drained"))
        assert isinstance(result, PartialEntry)
        assert result.entry_type == "energy"
        assert result.energy_level == "very-low"
        assert "completely drained" in provider.last_user_message

    def test_fenced_reply(self):
        provider = MockProvider('```json\n{"entry_type": "recovery"}\n```')
        result = run_async(LLMNoteClassifier(provider).classify("feeling better"))
        assert result.entry_type == "recovery"

    def test_null_type_is_unclassified(self):
        result = run_async(LLMNoteClassifier(MockProvider()).classify("went shopping"))
        assert isinstance(result, Unclassified)
        assert result.to_dict()["classified"] is False

    def test_garbage_reply(self):
        result = run_async(LLMNoteClassifier(MockProvider("I think it is a flare")).classify("ow"))
        assert isinstance(result, Unclassified)
        assert result.reason == "unparseable reply"

    def test_provider_error_never_raises(self):
        classifier = LLMNoteClassifier(_FailingProvider())
        result = run_async(classifier.classify("my knee hurts"))
        assert isinstance(result, Unclassified)
        assert result.reason == "classifier unavailable"
        assert classifier.discloses_data is True

    def test_empty_note_skips_provider(self):
        provider = MockProvider('{"entry_type": "flare"}')
        result = run_async(LLMNoteClassifier(provider).classify("   "))
        assert isinstance(result, Unclassified)
        assert provider.call_count == 0

    def test_long_note_truncated(self):
        provider = MockProvider('{"entry_type": "note"}')
        run_async(LLMNoteClassifier(provider).classify("a" * (MAX_NOTE_CHARS + 500)))
        assert provider.last_user_message.count("a") <= MAX_NOTE_CHARS + 10


class TestKeywordNoteClassifier:
    def test_satisfies_protocol(self, keyword):
        assert isinstance(keyword, NoteClassifier)
        assert keyword.discloses_data is False

    def test_severe_flare_with_trigger(self, keyword):
        result = keyword.classify_sync("Terrible migraine after coffee and stress")
        assert result.entry_type == "flare"
        assert result.severity == "severe"
        assert result.symptoms == ["migraine"]
        assert result.triggers == ["stress", "coffee"]

    @pytest.mark.parametrize(
        "note,severity",
        [
            ("a little headache", "mild"),
            ("bad back pain today", "moderate"),
            ("joints are sore", None),
        ],
    )
    def test_severity_words(self, keyword, note, severity):
        result = keyword.classify_sync(note)
        assert result.entry_type == "flare"
        assert result.severity == severity

    def test_medication(self, keyword):
        result = keyword.classify_sync("Took my meds at 8")
        assert result.entry_type == "medication"
        assert result.severity is None

    @pytest.mark.parametrize("note,level", [("feeling exhausted", "very-low"), ("a bit tired", "low")])
    def test_energy(self, keyword, note, level):
        result = keyword.classify_sync(note)
        assert result.entry_type == "energy"
        assert result.energy_level == level

    def test_recovery(self, keyword):
        assert keyword.classify_sync("Feeling much better").entry_type == "recovery"

    def test_no_match(self, keyword):
        result = keyword.classify_sync("Went to the park")
        assert isinstance(result, Unclassified)

    def test_deterministic(self, keyword):
        note = "Slight headache, maybe the weather"
        assert run_async(keyword.classify(note)) == keyword.classify_sync(note)


class TestFactory:
    def test_mock_gets_keyword_rules(self):
        assert isinstance(create_note_classifier(MockProvider()), KeywordNoteClassifier)

    def test_real_provider_gets_llm(self):
        classifier = create_note_classifier(_FailingProvider())
        assert isinstance(classifier, LLMNoteClassifier)
        assert classifier.name == "anthropic"
