"""Audit logger — PHI-free access logging and LLM disclosure tracking.

Records every tool invocation, note classification and deletion event in
an audit trail that never holds raw health data:

* ``tool_input_hash`` — SHA-256 of canonical JSON (no raw notes in logs).
* ``llm_disclosed``  — whether a note left the device for classification.
* ``entry_id``       — the entry touched, if any (an opaque UUID).
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from jvala.core.storage.database import DatabaseError, FlareDatabase

logger = logging.getLogger(__name__)


def _hash_input(data: Any) -> str:
    """SHA-256 hash of canonical JSON.

    Returns:
        Hex-encoded SHA-256 digest, or empty string on failure.
    """
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'tool_invocation' | 'note_classified' | 'data_delete'
    user_id: str | None = None
    tool_name: str = ""
    tool_input_hash: str = ""
    llm_provider: str | None = None      # 'anthropic' | 'openai' | 'mock'
    llm_disclosed: bool = False          # True if a note was sent to an external LLM
    entry_id: str | None = None
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    All writes are committed immediately. A failed audit write is logged
    and reported as an empty event ID; it never fails the caller's request.

    Usage::

        audit = AuditLogger(flare_db)
        event_id = audit.log_tool_call(
            tool_name="log_entry",
            tool_input={"entry_type": "flare"},
            user_id="user-1",
        )
    """

    def __init__(self, database: FlareDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its UUID."""
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"))
            if event.metadata
            else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, user_id, tool_name, tool_input_hash,
                    llm_provider, llm_disclosed, entry_id,
                    duration_ms, status, error_type, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.user_id,
                    event.tool_name or None,
                    event.tool_input_hash or None,
                    event.llm_provider,
                    1 if event.llm_disclosed else 0,
                    event.entry_id,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    metadata_json,
                ),
            )
            conn.commit()
        except (sqlite3.Error, DatabaseError):
            logger.exception("Failed to write audit event — event lost")
            return ""

        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        user_id: str | None = None,
        entry_id: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Convenience wrapper for logging a tool invocation.

        Args:
            tool_name: Name of the MCP tool.
            tool_input: Tool input data (hashed, never stored raw).
            user_id: Acting user.
            entry_id: Entry created or touched by the call.
            duration_ms: Tool execution duration in milliseconds.
            status: 'success' or 'failure'.
            error_type: Exception class name on failure.
            metadata: Additional non-PHI metadata.
        """
        return self.log_event(AuditEvent(
            action="tool_invocation",
            user_id=user_id,
            tool_name=tool_name,
            tool_input_hash=_hash_input(tool_input) if tool_input else "",
            entry_id=entry_id,
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_classification(
        self,
        *,
        user_id: str | None,
        llm_provider: str,
        llm_disclosed: bool,
        status: str = "success",
        error_type: str | None = None,
    ) -> str:
        """Log that a free-text note was classified, and whether it left the device."""
        return self.log_event(AuditEvent(
            action="note_classified",
            user_id=user_id,
            tool_name="classify_note",
            llm_provider=llm_provider,
            llm_disclosed=llm_disclosed,
            status=status,
            error_type=error_type,
        ))

    def log_data_delete(
        self,
        *,
        user_id: str | None = None,
        tool_name: str = "",
        entry_id: str | None = None,
        count: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a data deletion event.

        Args:
            user_id: Owner of the deleted data.
            tool_name: Tool that initiated the delete.
            entry_id: Specific entry deleted (if applicable).
            count: Number of records deleted.
            metadata: Additional context.
        """
        return self.log_event(AuditEvent(
            action="data_delete",
            user_id=user_id,
            tool_name=tool_name,
            entry_id=entry_id,
            metadata={**(metadata or {}), "records_deleted": count},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        user_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events with optional filters, newest first."""
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if tool_name:
            conditions.append("tool_name = ?")
            params.append(tool_name)
        if user_id:
            conditions.append("user_id = ?")
            params.append(user_id)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, since: str | None = None) -> int:
        """Count total audit events, optionally since a timestamp."""
        if since:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE timestamp >= ?", (since,)
            ).fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log"
            ).fetchone()
        return row[0]

    def count_disclosures(self, *, since: str | None = None) -> int:
        """Count events where a note was sent to an external LLM.

        This answers: "How many of my notes have left this device?"
        """
        if since:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE llm_disclosed = 1 AND timestamp >= ?",
                (since,),
            ).fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE llm_disclosed = 1"
            ).fetchone()
        return row[0]
