"""Note classification — free text to a partial entry.

Two implementations sit behind the ``NoteClassifier`` interface:

* ``LLMNoteClassifier`` asks an LLM provider for JSON. Any provider error,
  unparseable reply or unknown type yields ``Unclassified``; it never raises.
* ``KeywordNoteClassifier`` applies fixed keyword rules and is fully
  deterministic. It is used whenever no real LLM is configured.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol, Union, runtime_checkable

from jvala.core.llm.provider import LLMProvider, ProviderError
from jvala.core.storage.models import ENERGY_LEVELS, ENTRY_TYPES, clean_labels
from jvala.domains.flares.classification.prompt import NOTE_CLASSIFIER_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

MAX_NOTE_CHARS = 2000

_FLARE_SEVERITIES = ("mild", "moderate", "severe")


@dataclass
class PartialEntry:
    """Entry fields suggested for a note; the user confirms before saving."""

    entry_type: str
    severity: str | None = None
    energy_level: str | None = None
    symptoms: list[str] = field(default_factory=list)
    medications: list[str] = field(default_factory=list)
    triggers: list[str] = field(default_factory=list)
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"classified": True, **asdict(self)}


@dataclass
class Unclassified:
    """The note could not be classified; the caller leaves fields blank."""

    reason: str = ""
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"classified": False, "reason": self.reason, "source": self.source}


ClassificationResult = Union[PartialEntry, Unclassified]


@runtime_checkable
class NoteClassifier(Protocol):
    """Turns free text into a PartialEntry, or Unclassified."""

    name: str
    discloses_data: bool

    async def classify(self, text: str) -> ClassificationResult: ...


def partial_entry_from_dict(data: Any, source: str) -> ClassificationResult:
    """Validate a model's JSON reply into a PartialEntry.

    Fields that violate the entry invariants are dropped rather than
    rejecting the whole reply; an unknown or missing type is Unclassified.
    """
    if not isinstance(data, dict):
        return Unclassified(reason="reply is not a JSON object", source=source)

    entry_type = data.get("entry_type", data.get("type"))
    if entry_type not in ENTRY_TYPES:
        return Unclassified(reason=f"unknown entry type: {entry_type!r}", source=source)

    severity = data.get("severity")
    if entry_type != "flare" or severity not in _FLARE_SEVERITIES:
        severity = None
    energy_level = data.get("energy_level", data.get("energyLevel"))
    if entry_type != "energy" or energy_level not in ENERGY_LEVELS:
        energy_level = None

    def labels(key: str) -> list[str]:
        value = data.get(key)
        return clean_labels(value) if isinstance(value, list) else []

    return PartialEntry(
        entry_type=entry_type,
        severity=severity,
        energy_level=energy_level,
        symptoms=labels("symptoms"),
        medications=labels("medications"),
        triggers=labels("triggers"),
        source=source,
    )


def _extract_json(content: str) -> Any:
    text = content.strip()
    # Models sometimes wrap the object in a ```json fence
    fenced = re.search(r"```(?:json)?\s*(\{.*\})\s*```", text, re.DOTALL)
    if fenced:
        text = fenced.group(1)
    return json.loads(text)


class LLMNoteClassifier:
    """Classifies notes with an LLM provider.

    Usage::

        classifier = LLMNoteClassifier(create_provider("anthropic", api_key=key))
        result = await classifier.classify("Bad migraine after two coffees")
    """

    def __init__(self, provider: LLMProvider) -> None:
        self._provider = provider
        self.name = provider.name
        self.discloses_data = provider.discloses_data

    async def classify(self, text: str) -> ClassificationResult:
        note = (text or "").strip()
        if not note:
            return Unclassified(reason="empty note", source=self.name)

        user_message = f"Classify this health note:\n\n{note[:MAX_NOTE_CHARS]}"
        try:
            response = await self._provider.generate(
                system_message=NOTE_CLASSIFIER_SYSTEM_PROMPT,
                user_message=user_message,
            )
        except ProviderError as exc:
            logger.warning("Note classification failed: %s", exc)
            return Unclassified(reason="classifier unavailable", source=self.name)

        try:
            data = _extract_json(response.content)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Note classifier returned non-JSON content (%d chars)", len(response.content))
            return Unclassified(reason="unparseable reply", source=self.name)

        result = partial_entry_from_dict(data, self.name)
        logger.info(
            "Classified note via %s in %.0fms: %s",
            response.model,
            response.latency_ms,
            result.entry_type if isinstance(result, PartialEntry) else "unclassified",
        )
        return result


# ---------------------------------------------------------------------------
# Keyword rules
# ---------------------------------------------------------------------------

# Checked in order; the first rule with a matching keyword decides the type.
_TYPE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("flare", (
        "pain", "ache", "aching", "hurt", "hurts", "sore", "flare", "throbbing",
        "cramp", "cramps", "migraine", "headache", "nausea", "nauseous", "swollen",
        "swelling", "rash", "itchy", "dizzy", "stiff",
    )),
    ("medication", (
        "took", "take", "taking", "pill", "pills", "dose", "medication", "meds",
        "tablet", "injection",
    )),
    ("energy", ("tired", "exhausted", "fatigue", "fatigued", "drained", "sluggish", "wiped")),
    ("recovery", ("better", "recovering", "recovered", "improving", "relief", "relieved")),
)

_SEVERITY_WORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("severe", ("severe", "terrible", "unbearable", "excruciating", "worst", "awful", "intense")),
    ("moderate", ("moderate", "bad", "quite")),
    ("mild", ("mild", "slight", "slightly", "little", "minor")),
)

_SYMPTOM_WORDS = (
    "headache", "migraine", "nausea", "fatigue", "joint pain", "back pain", "stomach ache",
    "cramps", "rash", "dizziness", "brain fog", "swelling", "stiffness", "fever",
    "insomnia", "anxiety",
)

_TRIGGER_WORDS = (
    "stress", "coffee", "caffeine", "alcohol", "dairy", "gluten", "sugar", "weather",
    "heat", "cold", "rain", "poor sleep", "exercise", "travel",
)

_WORD_RE = re.compile(r"[a-z']+")


def _first_match(words: set[str], text: str, rules: tuple[tuple[str, tuple[str, ...]], ...]) -> str | None:
    for label, keywords in rules:
        for keyword in keywords:
            if (" " in keyword and keyword in text) or keyword in words:
                return label
    return None


def _found(vocabulary: tuple[str, ...], words: set[str], text: str) -> list[str]:
    return [term for term in vocabulary if (" " in term and term in text) or term in words]


class KeywordNoteClassifier:
    """Deterministic keyword classifier. Nothing leaves the process."""

    name = "keyword"
    discloses_data = False

    async def classify(self, text: str) -> ClassificationResult:
        return self.classify_sync(text)

    def classify_sync(self, text: str) -> ClassificationResult:
        lowered = (text or "").lower()
        words = set(_WORD_RE.findall(lowered))
        if not words:
            return Unclassified(reason="empty note", source=self.name)

        entry_type = _first_match(words, lowered, _TYPE_RULES)
        if entry_type is None:
            return Unclassified(reason="no keyword matched", source=self.name)

        severity = None
        energy_level = None
        if entry_type == "flare":
            severity = _first_match(words, lowered, _SEVERITY_WORDS)
        elif entry_type == "energy":
            energy_level = "very-low" if words & {"exhausted", "drained", "wiped"} else "low"

        return PartialEntry(
            entry_type=entry_type,
            severity=severity,
            energy_level=energy_level,
            symptoms=_found(_SYMPTOM_WORDS, words, lowered) if entry_type == "flare" else [],
            triggers=_found(_TRIGGER_WORDS, words, lowered),
            source=self.name,
        )


def create_note_classifier(provider: LLMProvider) -> LLMNoteClassifier | KeywordNoteClassifier:
    """Use the LLM for real providers and keyword rules for the mock."""
    if provider.name == "mock":
        return KeywordNoteClassifier()
    return LLMNoteClassifier(provider)
