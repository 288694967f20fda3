"""MCP tools for logging and managing flare entries.

Entries are persisted to the encrypted store. Notes, follow-ups and context
snapshots are encrypted at rest; the audit trail only ever sees hashes.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

from jvala.core.storage.models import EntryValidationError
from jvala.core.storage.repository import RepositoryError
from jvala.domains.flares.classification.note_classifier import PartialEntry
from jvala.domains.flares.services.entry_service import EntryDraft
from jvala.domains.flares.tools.common import audit_call, error_json, not_found_json

if TYPE_CHECKING:
    from jvala.core.audit.logger import AuditLogger
    from jvala.domains.flares.services.entry_service import EntryService

logger = logging.getLogger(__name__)


def register_entry_tools(
    mcp: FastMCP,
    entry_service: EntryService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register entry logging tools on the MCP server."""

    @mcp.tool
    async def log_entry(
        ctx: Context,
        user_id: str,
        entry_type: str,
        timestamp: str = "",
        severity: str | None = None,
        energy_level: str | None = None,
        symptoms: list[str] | None = None,
        medications: list[str] | None = None,
        triggers: list[str] | None = None,
        note: str = "",
        city: str = "",
    ) -> str:
        """Log a flare, medication, trigger, recovery, energy or note entry.

        Weather and wearable context are captured automatically when a
        context source is configured. Logging also updates your streak and
        may earn badges.

        Args:
            user_id: Your user ID.
            entry_type: One of flare, medication, trigger, recovery, energy, note.
            timestamp: When it happened (ISO 8601). Defaults to now.
            severity: For flares only: none, mild, moderate or severe.
            energy_level: For energy entries only: very-low, low, moderate, good, high.
            symptoms: Symptom labels (e.g., ['headache', 'nausea']).
            medications: Medication labels.
            triggers: Suspected trigger labels (e.g., ['stress', 'coffee']).
            note: Free-text note.
            city: Where you are, for weather context.
        """
        start_time = time.monotonic()
        tool_input = {"entry_type": entry_type, "timestamp": timestamp}
        draft = EntryDraft(
            entry_type=entry_type,
            timestamp=timestamp or None,
            severity=severity or None,
            energy_level=energy_level or None,
            symptoms=symptoms or [],
            medications=medications or [],
            triggers=triggers or [],
            note=note or None,
        )
        try:
            result = await entry_service.log_entry(
                user_id, draft, location={"city": city} if city else None
            )
        except (EntryValidationError, RepositoryError) as exc:
            audit_call(audit_logger, "log_entry", tool_input, start_time, user_id=user_id, error=exc)
            return error_json(exc)

        audit_call(
            audit_logger, "log_entry", tool_input, start_time,
            user_id=user_id, entry_id=result.entry.id,
        )
        return json.dumps({"status": "saved", **result.to_dict()})

    @mcp.tool
    async def edit_entry(
        ctx: Context,
        user_id: str,
        entry_id: str,
        changes: dict[str, Any],
    ) -> str:
        """Edit an entry's timestamp, severity, energy level, labels or note.

        Context snapshots and follow-ups cannot be edited.

        Args:
            user_id: Your user ID.
            entry_id: The entry to edit.
            changes: Field -> new value, e.g. {"severity": "mild"}.
        """
        start_time = time.monotonic()
        tool_input = {"entry_id": entry_id, "fields": sorted(changes)}
        try:
            entry = entry_service.edit_entry(user_id, entry_id, changes)
        except (EntryValidationError, RepositoryError) as exc:
            audit_call(audit_logger, "edit_entry", tool_input, start_time, user_id=user_id, error=exc)
            return error_json(exc)

        audit_call(audit_logger, "edit_entry", tool_input, start_time, user_id=user_id, entry_id=entry_id)
        if entry is None:
            return not_found_json("entry", entry_id)
        return json.dumps({"status": "updated", "entry": entry.to_dict()})

    @mcp.tool
    async def add_follow_up(
        ctx: Context,
        user_id: str,
        entry_id: str,
        note: str,
        timestamp: str = "",
    ) -> str:
        """Append a progress note to an existing entry.

        Args:
            user_id: Your user ID.
            entry_id: The entry to follow up on.
            note: How things are going now.
            timestamp: When (ISO 8601). Defaults to now.
        """
        start_time = time.monotonic()
        tool_input = {"entry_id": entry_id}
        try:
            entry = entry_service.append_follow_up(user_id, entry_id, note, timestamp or None)
        except (EntryValidationError, RepositoryError) as exc:
            audit_call(audit_logger, "add_follow_up", tool_input, start_time, user_id=user_id, error=exc)
            return error_json(exc)

        audit_call(audit_logger, "add_follow_up", tool_input, start_time, user_id=user_id, entry_id=entry_id)
        if entry is None:
            return not_found_json("entry", entry_id)
        return json.dumps({
            "status": "saved",
            "entry_id": entry_id,
            "follow_up_count": len(entry.follow_ups),
        })

    @mcp.tool
    async def delete_entry(
        ctx: Context,
        user_id: str,
        entry_id: str,
    ) -> str:
        """Permanently delete one of your entries.

        Args:
            user_id: Your user ID.
            entry_id: The UUID of the entry to delete.
        """
        try:
            deleted = entry_service.delete_entry(user_id, entry_id)
        except RepositoryError as exc:
            return error_json(exc)

        if not deleted:
            return not_found_json("entry", entry_id)

        if audit_logger is not None:
            audit_logger.log_data_delete(
                user_id=user_id, tool_name="delete_entry", entry_id=entry_id, count=1
            )
        return json.dumps({"status": "deleted", "entry_id": entry_id})

    @mcp.tool
    async def list_entries(
        ctx: Context,
        user_id: str,
        since: str = "",
        until: str = "",
        limit: int = 50,
    ) -> str:
        """List your entries, newest first.

        Args:
            user_id: Your user ID.
            since: Optional ISO 8601 lower bound.
            until: Optional ISO 8601 upper bound.
            limit: Maximum entries to return (default: 50).
        """
        start_time = time.monotonic()
        try:
            entries = entry_service.list_entries(
                user_id, since=since or None, until=until or None, limit=max(1, limit)
            )
        except EntryValidationError as exc:
            return error_json(exc)

        audit_call(
            audit_logger, "list_entries", {"since": since, "until": until}, start_time,
            user_id=user_id, metadata={"returned": len(entries)},
        )
        return json.dumps({
            "status": "ok",
            "count": len(entries),
            "entries": [e.to_dict() for e in entries],
        })

    @mcp.tool
    async def classify_note(
        ctx: Context,
        note: str,
        user_id: str = "",
    ) -> str:
        """Suggest entry fields (type, severity, symptoms...) for a free-text note.

        Nothing is saved: confirm the suggestion with log_entry. When a
        cloud LLM is configured the note is sent to it, and that disclosure
        is recorded in the audit trail.

        Args:
            note: The note to classify.
            user_id: Optional, for the audit trail.
        """
        result = await entry_service.classify_note(note)
        if audit_logger is not None:
            audit_logger.log_classification(
                user_id=user_id or None,
                llm_provider=result.source,
                llm_disclosed=entry_service.classifier_discloses_data,
                status="success" if isinstance(result, PartialEntry) else "failure",
            )
        return json.dumps(result.to_dict())
