"""Entry service — log, edit, annotate, delete and list flare entries.

Saving an entry is the primary user action: context enrichment and the
engagement update are best effort and never fail it. Only a failed write
of the entry itself surfaces (as RepositoryError).
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from jvala.core.storage.models import (
    EDITABLE_FIELDS,
    EngagementState,
    EntryValidationError,
    FlareEntry,
    FollowUp,
    parse_timestamp,
)
from jvala.core.storage.repository import FlareRepository, RepositoryError
from jvala.domains.flares.classification.note_classifier import (
    ClassificationResult,
    NoteClassifier,
)
from jvala.domains.flares.connectors import ContextProvider
from jvala.domains.flares.connectors.normalization import (
    city_of,
    normalize_environmental,
    normalize_physiological,
)
from jvala.domains.flares.domain_logic.badges import BadgeCatalogError
from jvala.domains.flares.domain_logic.correlation_aggregator import MIN_CONFIDENCE
from jvala.domains.flares.domain_logic.engagement_tracker import LabelStats, record_log

logger = logging.getLogger(__name__)


@dataclass
class EntryDraft:
    """User input for a new entry. ``timestamp`` defaults to now."""

    entry_type: str
    timestamp: datetime | str | None = None
    severity: str | None = None
    energy_level: str | None = None
    symptoms: list[str] = field(default_factory=list)
    medications: list[str] = field(default_factory=list)
    triggers: list[str] = field(default_factory=list)
    note: str | None = None


@dataclass
class LogResult:
    """A saved entry plus the engagement state it produced.

    ``engagement`` is None when the engagement update failed; the entry is
    saved regardless.
    """

    entry: FlareEntry
    engagement: EngagementState | None = None
    new_badges: list[str] = field(default_factory=list)
    streak_increased: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry": self.entry.to_dict(),
            "engagement": self.engagement.to_dict() if self.engagement else None,
            "new_badges": list(self.new_badges),
            "streak_increased": self.streak_increased,
        }


class EntryService:
    """Orchestrates entry writes around the repository.

    Usage::

        service = EntryService(repository, MockContextProvider(), KeywordNoteClassifier())
        result = await service.log_entry("user-1", EntryDraft(entry_type="flare", severity="mild"))
    """

    def __init__(
        self,
        repository: FlareRepository,
        context_provider: ContextProvider,
        classifier: NoteClassifier,
    ) -> None:
        self._repo = repository
        self._context = context_provider
        self._classifier = classifier

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def _environmental(self, location: dict[str, Any] | None) -> dict[str, Any] | None:
        try:
            raw = await self._context.get_environmental(location)
        except Exception as exc:
            logger.warning("Environmental context unavailable: %s", type(exc).__name__)
            return None
        return normalize_environmental(raw)

    async def _physiological(self) -> dict[str, Any] | None:
        try:
            raw = await self._context.get_physiological()
        except Exception as exc:
            logger.warning("Physiological context unavailable: %s", type(exc).__name__)
            return None
        return normalize_physiological(raw)

    def _label_stats(self, user_id: str) -> LabelStats:
        return LabelStats(
            distinct_symptoms=len(self._repo.distinct_labels(user_id, "symptoms")),
            distinct_triggers=len(self._repo.distinct_labels(user_id, "triggers")),
            correlation_count=len(
                self._repo.get_correlations(user_id, min_confidence=MIN_CONFIDENCE, limit=1000)
            ),
        )

    async def log_entry(
        self,
        user_id: str,
        draft: EntryDraft,
        location: dict[str, Any] | None = None,
    ) -> LogResult:
        """Validate, enrich, save, then update engagement.

        Raises:
            EntryValidationError: If the draft violates the entry invariants.
            RepositoryError: If the entry could not be saved.
        """
        if not user_id:
            raise EntryValidationError("user_id is required")

        entry = FlareEntry(
            id="",
            user_id=user_id,
            timestamp=draft.timestamp or datetime.now(timezone.utc),
            entry_type=draft.entry_type,
            severity=draft.severity,
            energy_level=draft.energy_level,
            symptoms=draft.symptoms,
            medications=draft.medications,
            triggers=draft.triggers,
            note=draft.note or None,
        )

        environmental = await self._environmental(location)
        physiological = await self._physiological()
        entry.environmental_data = environmental
        entry.physiological_data = physiological
        entry.city = city_of(environmental) or (location or {}).get("city") or None

        entry.id = self._repo.save_entry(entry)

        result = LogResult(entry=entry)
        try:
            update = record_log(
                self._repo.get_engagement(user_id),
                entry.local_date,
                entry,
                self._label_stats(user_id),
                user_id=user_id,
            )
            self._repo.save_engagement(update.engagement)
        except (RepositoryError, sqlite3.Error, BadgeCatalogError) as exc:
            logger.warning("Engagement update failed for entry %s: %s", entry.id, exc)
            return result

        result.engagement = update.engagement
        result.new_badges = update.new_badges
        result.streak_increased = update.streak_increased
        if update.new_badges:
            logger.info("User %s earned badges: %s", user_id, ", ".join(update.new_badges))
        return result

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    def edit_entry(self, user_id: str, entry_id: str, changes: dict[str, Any]) -> FlareEntry | None:
        """Apply changes to an entry's mutable fields.

        Returns:
            The updated entry, or None if the user has no such entry.

        Raises:
            EntryValidationError: For a non-editable field or an invalid result.
        """
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise EntryValidationError(f"Fields cannot be edited: {', '.join(unknown)}")

        current = self._repo.get_entry(user_id, entry_id)
        if current is None:
            return None

        updates = dict(changes)
        if "timestamp" in updates:
            updates["timestamp"] = parse_timestamp(updates["timestamp"])
        if "note" in updates:
            updates["note"] = updates["note"] or None
        for name in ("symptoms", "medications", "triggers"):
            if name in updates and updates[name] is None:
                updates[name] = []

        # replace() re-runs validation, so invalid combinations raise here
        edited = replace(current, **updates)
        if not self._repo.update_entry(edited):
            return None
        return edited

    def append_follow_up(
        self,
        user_id: str,
        entry_id: str,
        note: str,
        timestamp: datetime | str | None = None,
    ) -> FlareEntry | None:
        """Append a progress note to an entry; None if the user has no such entry."""
        text = (note or "").strip()
        if not text:
            raise EntryValidationError("Follow-up note must not be empty")
        ts = parse_timestamp(timestamp) if timestamp else datetime.now(timezone.utc)
        return self._repo.append_follow_up(
            user_id, entry_id, FollowUp(timestamp=ts.isoformat(), note=text)
        )

    def delete_entry(self, user_id: str, entry_id: str) -> bool:
        return self._repo.delete_entry(user_id, entry_id)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_entries(
        self,
        user_id: str,
        *,
        since: datetime | str | None = None,
        until: datetime | str | None = None,
        limit: int | None = 100,
        newest_first: bool = True,
    ) -> list[FlareEntry]:
        """Entries in an optional time range, newest first for display by default."""
        return self._repo.get_entries(
            user_id,
            since=parse_timestamp(since) if since else None,
            until=parse_timestamp(until) if until else None,
            limit=limit,
            newest_first=newest_first,
        )

    @property
    def classifier_discloses_data(self) -> bool:
        """Whether classify_note sends the note text off the device."""
        return bool(getattr(self._classifier, "discloses_data", False))

    async def classify_note(self, text: str) -> ClassificationResult:
        """Suggest entry fields for a free-text note. Never raises."""
        return await self._classifier.classify(text)
