"""SQLite database management for the flare tracker.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per logged event
CREATE TABLE IF NOT EXISTS flare_entries (
    id                   TEXT PRIMARY KEY,
    user_id              TEXT NOT NULL,
    timestamp            TEXT NOT NULL,  -- as entered, with its UTC offset
    timestamp_utc        TEXT NOT NULL,  -- normalized for range queries
    entry_type           TEXT NOT NULL,
    severity             TEXT,
    energy_level         TEXT,

    -- Label sets (JSON arrays, unencrypted for aggregation)
    symptoms_json        TEXT NOT NULL DEFAULT '[]',
    medications_json     TEXT NOT NULL DEFAULT '[]',
    triggers_json        TEXT NOT NULL DEFAULT '[]',
    city                 TEXT,

    -- Encrypted JSON blobs
    note_enc             TEXT,
    follow_ups_enc       TEXT,
    environmental_enc    TEXT,
    physiological_enc    TEXT,

    created_at           TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at           TEXT
);

-- Gamification state, one row per user
CREATE TABLE IF NOT EXISTS engagement (
    user_id         TEXT PRIMARY KEY,
    current_streak  INTEGER NOT NULL DEFAULT 0,
    longest_streak  INTEGER NOT NULL DEFAULT 0,
    total_logs      INTEGER NOT NULL DEFAULT 0,
    badges_json     TEXT NOT NULL DEFAULT '[]',
    last_log_date   TEXT,
    updated_at      TEXT
);

-- At most one report per (user, week_start); recomputation replaces the row
CREATE TABLE IF NOT EXISTS weekly_reports (
    id                    TEXT PRIMARY KEY,
    user_id               TEXT NOT NULL,
    week_start            TEXT NOT NULL,
    week_end              TEXT NOT NULL,
    health_score          INTEGER NOT NULL,
    flare_count           INTEGER NOT NULL DEFAULT 0,
    avg_severity          REAL NOT NULL DEFAULT 0,
    logging_consistency   INTEGER NOT NULL DEFAULT 0,
    days_with_entries     INTEGER NOT NULL DEFAULT 0,
    trend                 TEXT NOT NULL,
    top_symptoms_json     TEXT NOT NULL DEFAULT '[]',
    top_triggers_json     TEXT NOT NULL DEFAULT '[]',
    top_correlations_json TEXT NOT NULL DEFAULT '[]',
    key_insights_json     TEXT NOT NULL DEFAULT '[]',
    created_at            TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (user_id, week_start)
);

-- Derived trigger -> outcome patterns, replaced wholesale on refresh
CREATE TABLE IF NOT EXISTS correlations (
    id                TEXT PRIMARY KEY,
    user_id           TEXT NOT NULL,
    trigger_type      TEXT NOT NULL,
    trigger_value     TEXT NOT NULL,
    outcome_type      TEXT NOT NULL,
    outcome_value     TEXT NOT NULL,
    occurrence_count  INTEGER NOT NULL,
    avg_delay_minutes INTEGER NOT NULL,
    confidence        REAL NOT NULL,
    last_occurred     TEXT,
    created_at        TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_entries_user_ts     ON flare_entries(user_id, timestamp_utc);
CREATE INDEX IF NOT EXISTS idx_entries_type        ON flare_entries(entry_type);
CREATE INDEX IF NOT EXISTS idx_reports_user_week   ON weekly_reports(user_id, week_start);
CREATE INDEX IF NOT EXISTS idx_correlations_user   ON correlations(user_id, confidence);
"""

# ---------------------------------------------------------------------------
# V2: clinician report shares + audit log
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS report_shares (
    token           TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    password_hash   TEXT NOT NULL,
    physician_name  TEXT,
    expires_at      TEXT NOT NULL,
    created_at      TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    user_id         TEXT,
    tool_name       TEXT,
    tool_input_hash TEXT,
    llm_provider    TEXT,
    llm_disclosed   INTEGER DEFAULT 0,
    entry_id        TEXT,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_shares_user     ON report_shares(user_id);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_tool      ON audit_log(tool_name);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class FlareDatabase:
    """SQLite database manager for the flare tracker.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = FlareDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        For file-based databases, creates parent directories if needed.
        Idempotent: safe to call multiple times.
        """
        if self._conn is not None:
            return

        if self._db_path != ":memory:":
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_file))
        else:
            self._conn = sqlite3.connect(":memory:")

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Flare database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection

        conn.executescript(_SCHEMA_V1)

        cursor = conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        current_version = row[0] if row[0] is not None else 0

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: report_shares, audit_log")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        cursor = self.connection.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Flare database closed")

    def __enter__(self) -> FlareDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
