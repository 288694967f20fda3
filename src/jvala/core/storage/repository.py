"""Flare data repository — CRUD operations for the encrypted entry store.

The repository mediates between domain objects (FlareEntry, WeeklyReport,
EngagementState, Correlation, ReportShare) and the SQLite database, using
FieldEncryptor to encrypt/decrypt free-text and snapshot fields.

Every entry operation is keyed by ``(user_id, entry_id)``: an id belonging to
another user behaves exactly like a missing id.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Iterator

from jvala.core.storage.database import FlareDatabase
from jvala.core.storage.encryption import FieldEncryptor
from jvala.core.storage.models import (
    Correlation,
    EngagementState,
    FlareEntry,
    FollowUp,
    ReportShare,
    WeeklyReport,
)

logger = logging.getLogger(__name__)

_LABEL_COLUMNS = {
    "symptoms": "symptoms_json",
    "medications": "medications_json",
    "triggers": "triggers_json",
}


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def _utc_iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat()


class FlareRepository:
    """CRUD repository for flare entries and their derived summaries.

    Usage::

        db = FlareDatabase(":memory:")
        db.initialize()
        encryptor = FieldEncryptor(key="...")
        repo = FlareRepository(db, encryptor)

        entry_id = repo.save_entry(entry)
        week = repo.get_entries("user-1", since=start, until=end)
    """

    def __init__(self, database: FlareDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @property
    def database(self) -> FlareDatabase:
        """The underlying database (shared with the audit logger)."""
        return self._db

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    @contextmanager
    def _write(self, action: str) -> Iterator[sqlite3.Connection]:
        """Run a write in one transaction; roll back and raise RepositoryError on failure."""
        conn = self._db.connection
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error("Failed to %s: %s", action, exc)
            raise RepositoryError(f"Failed to {action}: {exc}") from exc

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def save_entry(self, entry: FlareEntry) -> str:
        """Persist a new entry with encrypted free-text and snapshot fields.

        Args:
            entry: The entry to save. If ``entry.id`` is empty, a UUID
                will be generated.

        Returns:
            The entry ID.
        """
        eid = entry.id or self._new_id()
        now = entry.created_at or self._now_iso()

        with self._write("save entry") as conn:
            conn.execute(
                """INSERT INTO flare_entries (
                    id, user_id, timestamp, timestamp_utc, entry_type, severity, energy_level,
                    symptoms_json, medications_json, triggers_json, city,
                    note_enc, follow_ups_enc, environmental_enc, physiological_enc,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    eid,
                    entry.user_id,
                    entry.timestamp.isoformat(),
                    _utc_iso(entry.timestamp),
                    entry.entry_type,
                    entry.severity,
                    entry.energy_level,
                    json.dumps(entry.symptoms),
                    json.dumps(entry.medications),
                    json.dumps(entry.triggers),
                    entry.city,
                    self._enc.encrypt(entry.note),
                    self._enc.encrypt([vars(f) for f in entry.follow_ups] or None),
                    self._enc.encrypt(entry.environmental_data),
                    self._enc.encrypt(entry.physiological_data),
                    now,
                ),
            )

        logger.info("Saved entry %s (user=%s, type=%s)", eid, entry.user_id, entry.entry_type)
        return eid

    def get_entry(self, user_id: str, entry_id: str) -> FlareEntry | None:
        """Retrieve one of the user's entries by ID, or None if not found."""
        row = self._db.connection.execute(
            "SELECT * FROM flare_entries WHERE id = ? AND user_id = ?",
            (entry_id, user_id),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    def get_entries(
        self,
        user_id: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[FlareEntry]:
        """Query a user's entries in an optional time range.

        Args:
            user_id: Owning user.
            since: Inclusive lower bound.
            until: Inclusive upper bound.
            limit: Maximum results. With ``newest_first=False`` the most
                recent ``limit`` entries are still the ones kept.
            newest_first: Display order (descending) instead of the
                ascending order the calculators consume.

        Returns:
            Decrypted entries sorted by timestamp.
        """
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]

        if since is not None:
            conditions.append("timestamp_utc >= ?")
            params.append(_utc_iso(since))
        if until is not None:
            conditions.append("timestamp_utc <= ?")
            params.append(_utc_iso(until))

        query = (
            f"SELECT * FROM flare_entries WHERE {' AND '.join(conditions)} "
            "ORDER BY timestamp_utc DESC, created_at DESC"
        )
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        entries = [self._row_to_entry(row) for row in rows]
        if not newest_first:
            entries.reverse()
        return entries

    def count_entries(self, user_id: str | None = None) -> int:
        """Return the number of stored entries, for one user or overall."""
        conn = self._db.connection
        if user_id is None:
            row = conn.execute("SELECT COUNT(*) FROM flare_entries").fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) FROM flare_entries WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row[0]

    def distinct_labels(self, user_id: str, field_name: str) -> set[str]:
        """Return the set of distinct (lowercased) labels a user has ever logged.

        Args:
            field_name: 'symptoms', 'medications' or 'triggers'.
        """
        column = _LABEL_COLUMNS.get(field_name)
        if column is None:
            raise RepositoryError(
                f"Invalid label field: {field_name!r}. Valid: {sorted(_LABEL_COLUMNS)}"
            )
        # Column name comes from _LABEL_COLUMNS, never from the caller
        rows = self._db.connection.execute(
            f"SELECT {column} FROM flare_entries WHERE user_id = ?", (user_id,)
        ).fetchall()
        labels: set[str] = set()
        for row in rows:
            for label in _load_json_list(row[0]):
                if isinstance(label, str):
                    labels.add(label.lower())
        return labels

    def update_entry(self, entry: FlareEntry) -> bool:
        """Write the mutable fields of an existing entry back to the store.

        Snapshots and follow-ups are left untouched.

        Returns:
            True if the entry existed for that user and was updated.
        """
        with self._write("update entry") as conn:
            cursor = conn.execute(
                """UPDATE flare_entries SET
                       timestamp = ?, timestamp_utc = ?, severity = ?, energy_level = ?,
                       symptoms_json = ?, medications_json = ?, triggers_json = ?,
                       note_enc = ?, updated_at = ?
                   WHERE id = ? AND user_id = ?""",
                (
                    entry.timestamp.isoformat(),
                    _utc_iso(entry.timestamp),
                    entry.severity,
                    entry.energy_level,
                    json.dumps(entry.symptoms),
                    json.dumps(entry.medications),
                    json.dumps(entry.triggers),
                    self._enc.encrypt(entry.note),
                    self._now_iso(),
                    entry.id,
                    entry.user_id,
                ),
            )
        updated = cursor.rowcount > 0
        if updated:
            logger.info("Updated entry %s", entry.id)
        return updated

    def append_follow_up(
        self, user_id: str, entry_id: str, follow_up: FollowUp
    ) -> FlareEntry | None:
        """Append a follow-up note to an entry.

        Returns:
            The updated entry, or None if the entry does not exist for that user.
        """
        entry = self.get_entry(user_id, entry_id)
        if entry is None:
            return None

        entry.follow_ups.append(follow_up)
        with self._write("append follow-up") as conn:
            conn.execute(
                "UPDATE flare_entries SET follow_ups_enc = ?, updated_at = ? "
                "WHERE id = ? AND user_id = ?",
                (
                    self._enc.encrypt([vars(f) for f in entry.follow_ups]),
                    self._now_iso(),
                    entry_id,
                    user_id,
                ),
            )
        logger.info("Appended follow-up to entry %s (%d total)", entry_id, len(entry.follow_ups))
        return entry

    def delete_entry(self, user_id: str, entry_id: str) -> bool:
        """Delete a single entry.

        Returns:
            True if an entry was found and deleted, False otherwise.
        """
        with self._write("delete entry") as conn:
            cursor = conn.execute(
                "DELETE FROM flare_entries WHERE id = ? AND user_id = ?",
                (entry_id, user_id),
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted entry %s", entry_id)
        return deleted

    # ------------------------------------------------------------------
    # Engagement
    # ------------------------------------------------------------------

    def get_engagement(self, user_id: str) -> EngagementState | None:
        """Return the user's engagement row, or None before their first log."""
        row = self._db.connection.execute(
            "SELECT * FROM engagement WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return EngagementState(
            user_id=row["user_id"],
            current_streak=row["current_streak"],
            longest_streak=row["longest_streak"],
            total_logs=row["total_logs"],
            badges=_load_json_list(row["badges_json"]),
            last_log_date=date.fromisoformat(row["last_log_date"]) if row["last_log_date"] else None,
        )

    def save_engagement(self, state: EngagementState) -> None:
        """Insert or replace the user's engagement row (last write wins)."""
        with self._write("save engagement") as conn:
            conn.execute(
                """INSERT INTO engagement
                       (user_id, current_streak, longest_streak, total_logs,
                        badges_json, last_log_date, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET
                       current_streak = excluded.current_streak,
                       longest_streak = excluded.longest_streak,
                       total_logs = excluded.total_logs,
                       badges_json = excluded.badges_json,
                       last_log_date = excluded.last_log_date,
                       updated_at = excluded.updated_at""",
                (
                    state.user_id,
                    state.current_streak,
                    state.longest_streak,
                    state.total_logs,
                    json.dumps(list(state.badges)),
                    state.last_log_date.isoformat() if state.last_log_date else None,
                    self._now_iso(),
                ),
            )

    # ------------------------------------------------------------------
    # Weekly reports
    # ------------------------------------------------------------------

    def upsert_weekly_report(self, report: WeeklyReport) -> str:
        """Store a report, fully replacing any existing row for (user, week_start).

        Returns:
            The report row ID (kept stable across recomputations).
        """
        conn = self._db.connection
        existing = conn.execute(
            "SELECT id FROM weekly_reports WHERE user_id = ? AND week_start = ?",
            (report.user_id, report.week_start.isoformat()),
        ).fetchone()
        rid = existing["id"] if existing else self._new_id()

        with self._write("upsert weekly report") as conn:
            conn.execute(
                """INSERT OR REPLACE INTO weekly_reports (
                       id, user_id, week_start, week_end, health_score, flare_count,
                       avg_severity, logging_consistency, days_with_entries, trend,
                       top_symptoms_json, top_triggers_json, top_correlations_json,
                       key_insights_json, created_at
                   ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    rid,
                    report.user_id,
                    report.week_start.isoformat(),
                    report.week_end.isoformat(),
                    report.health_score,
                    report.flare_count,
                    report.avg_severity,
                    report.logging_consistency,
                    report.days_with_entries,
                    report.trend,
                    json.dumps(report.top_symptoms),
                    json.dumps(report.top_triggers),
                    json.dumps(report.top_correlations),
                    json.dumps(report.key_insights),
                    self._now_iso(),
                ),
            )
        logger.info(
            "Upserted weekly report %s (user=%s, week_start=%s, score=%d)",
            rid, report.user_id, report.week_start, report.health_score,
        )
        return rid

    def get_weekly_report(self, user_id: str, week_start: date) -> WeeklyReport | None:
        """Return the stored report for (user, week_start), if any."""
        row = self._db.connection.execute(
            "SELECT * FROM weekly_reports WHERE user_id = ? AND week_start = ?",
            (user_id, week_start.isoformat()),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_report(row)

    def get_weekly_reports(self, user_id: str, *, limit: int = 12) -> list[WeeklyReport]:
        """Return the user's most recent reports, newest week first."""
        rows = self._db.connection.execute(
            "SELECT * FROM weekly_reports WHERE user_id = ? ORDER BY week_start DESC LIMIT ?",
            (user_id, limit),
        ).fetchall()
        return [self._row_to_report(row) for row in rows]

    # ------------------------------------------------------------------
    # Correlations
    # ------------------------------------------------------------------

    def replace_correlations(self, user_id: str, correlations: list[Correlation]) -> int:
        """Replace all of a user's stored correlations in one transaction.

        Returns:
            Number of correlations written.
        """
        with self._write("replace correlations") as conn:
            conn.execute("DELETE FROM correlations WHERE user_id = ?", (user_id,))
            for corr in correlations:
                conn.execute(
                    """INSERT INTO correlations (
                           id, user_id, trigger_type, trigger_value, outcome_type,
                           outcome_value, occurrence_count, avg_delay_minutes,
                           confidence, last_occurred
                       ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        corr.id or self._new_id(),
                        user_id,
                        corr.trigger_type,
                        corr.trigger_value,
                        corr.outcome_type,
                        corr.outcome_value,
                        corr.occurrence_count,
                        corr.avg_delay_minutes,
                        corr.confidence,
                        corr.last_occurred,
                    ),
                )
        logger.info("Stored %d correlations for user %s", len(correlations), user_id)
        return len(correlations)

    def get_correlations(
        self,
        user_id: str,
        *,
        min_confidence: float = 0.0,
        limit: int = 50,
    ) -> list[Correlation]:
        """Return stored correlations, highest confidence first."""
        rows = self._db.connection.execute(
            """SELECT * FROM correlations
               WHERE user_id = ? AND confidence >= ?
               ORDER BY confidence DESC, occurrence_count DESC, trigger_value ASC, trigger_type ASC
               LIMIT ?""",
            (user_id, min_confidence, limit),
        ).fetchall()
        return [
            Correlation(
                id=row["id"],
                user_id=row["user_id"],
                trigger_type=row["trigger_type"],
                trigger_value=row["trigger_value"],
                outcome_type=row["outcome_type"],
                outcome_value=row["outcome_value"],
                occurrence_count=row["occurrence_count"],
                avg_delay_minutes=row["avg_delay_minutes"],
                confidence=row["confidence"],
                last_occurred=row["last_occurred"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Report shares
    # ------------------------------------------------------------------

    def save_share(self, share: ReportShare) -> None:
        with self._write("save report share") as conn:
            conn.execute(
                """INSERT INTO report_shares
                       (token, user_id, password_hash, physician_name, expires_at, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    share.token,
                    share.user_id,
                    share.password_hash,
                    share.physician_name,
                    share.expires_at,
                    share.created_at or self._now_iso(),
                ),
            )

    def get_share(self, token: str) -> ReportShare | None:
        row = self._db.connection.execute(
            "SELECT * FROM report_shares WHERE token = ?", (token,)
        ).fetchone()
        if row is None:
            return None
        return ReportShare(
            token=row["token"],
            user_id=row["user_id"],
            password_hash=row["password_hash"],
            expires_at=row["expires_at"],
            physician_name=row["physician_name"] or "",
            created_at=row["created_at"],
        )

    def delete_share(self, token: str) -> bool:
        with self._write("delete report share") as conn:
            cursor = conn.execute("DELETE FROM report_shares WHERE token = ?", (token,))
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Deletion (right to erasure)
    # ------------------------------------------------------------------

    def delete_user_data(self, user_id: str) -> int:
        """Delete everything stored for one user.

        Returns:
            Number of entry rows deleted.
        """
        count = self.count_entries(user_id)
        with self._write("delete user data") as conn:
            for table in ("flare_entries", "engagement", "weekly_reports",
                          "correlations", "report_shares"):
                conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
        logger.warning("Deleted ALL data for user %s: %d entries removed", user_id, count)
        return count

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_entry(self, row: Any) -> FlareEntry:
        """Convert a database row to a FlareEntry with decrypted fields."""
        follow_ups_raw = self._enc.decrypt(row["follow_ups_enc"] or "") or []
        return FlareEntry(
            id=row["id"],
            user_id=row["user_id"],
            timestamp=row["timestamp"],
            entry_type=row["entry_type"],
            severity=row["severity"],
            energy_level=row["energy_level"],
            symptoms=_load_json_list(row["symptoms_json"]),
            medications=_load_json_list(row["medications_json"]),
            triggers=_load_json_list(row["triggers_json"]),
            note=self._enc.decrypt(row["note_enc"] or ""),
            follow_ups=[
                FollowUp(timestamp=f.get("timestamp", ""), note=f.get("note", ""))
                for f in follow_ups_raw
                if isinstance(f, dict)
            ],
            environmental_data=self._enc.decrypt(row["environmental_enc"] or ""),
            physiological_data=self._enc.decrypt(row["physiological_enc"] or ""),
            city=row["city"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_report(row: Any) -> WeeklyReport:
        return WeeklyReport(
            user_id=row["user_id"],
            week_start=date.fromisoformat(row["week_start"]),
            week_end=date.fromisoformat(row["week_end"]),
            health_score=row["health_score"],
            flare_count=row["flare_count"],
            avg_severity=row["avg_severity"],
            logging_consistency=row["logging_consistency"],
            days_with_entries=row["days_with_entries"],
            trend=row["trend"],
            top_symptoms=_load_json_list(row["top_symptoms_json"]),
            top_triggers=_load_json_list(row["top_triggers_json"]),
            top_correlations=_load_json_list(row["top_correlations_json"]),
            key_insights=_load_json_list(row["key_insights_json"]),
        )


def _load_json_list(raw: str | None) -> list[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return []
    return value if isinstance(value, list) else []
