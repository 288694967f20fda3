"""Data models for the flare persistence layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any

ENTRY_TYPES = ("flare", "medication", "trigger", "recovery", "energy", "note")
SEVERITIES = ("none", "mild", "moderate", "severe")
ENERGY_LEVELS = ("very-low", "low", "moderate", "good", "high")

# Fields an owner may change after creation. Snapshots and follow-ups are
# not in here: snapshots are immutable, follow-ups are append-only.
EDITABLE_FIELDS = (
    "timestamp",
    "severity",
    "energy_level",
    "symptoms",
    "medications",
    "triggers",
    "note",
)


class EntryValidationError(ValueError):
    """Raised when an entry violates the type/severity/energy invariants."""


def parse_timestamp(value: datetime | str) -> datetime:
    """Parse an ISO 8601 string (or pass a datetime through) as an aware datetime.

    Naive values are taken to be UTC. A trailing ``Z`` is accepted.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise EntryValidationError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise EntryValidationError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clean_labels(labels: Any) -> list[str]:
    """Normalize a label collection: strip, drop blanks and duplicates, keep order."""
    if not labels:
        return []
    if isinstance(labels, str):
        labels = [labels]
    result: list[str] = []
    seen: set[str] = set()
    for label in labels:
        if not isinstance(label, str):
            continue
        text = label.strip()
        key = text.lower()
        if text and key not in seen:
            seen.add(key)
            result.append(text)
    return result


@dataclass
class FollowUp:
    """A progress note appended to an entry after the fact."""

    timestamp: str  # ISO 8601
    note: str


@dataclass
class FlareEntry:
    """One logged event: a flare, medication dose, trigger, recovery, energy or note.

    Label fields are unordered sets stored as de-duplicated lists. Snapshots
    (``environmental_data``, ``physiological_data``) are captured at creation
    and never edited.
    """

    id: str
    user_id: str
    timestamp: datetime
    entry_type: str
    severity: str | None = None
    energy_level: str | None = None
    symptoms: list[str] = field(default_factory=list)
    medications: list[str] = field(default_factory=list)
    triggers: list[str] = field(default_factory=list)
    note: str | None = None
    follow_ups: list[FollowUp] = field(default_factory=list)
    environmental_data: dict[str, Any] | None = None
    physiological_data: dict[str, Any] | None = None
    city: str | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        self.timestamp = parse_timestamp(self.timestamp)
        if self.entry_type not in ENTRY_TYPES:
            raise EntryValidationError(f"Unknown entry type: {self.entry_type!r}")
        if self.severity is not None:
            if self.entry_type != "flare":
                raise EntryValidationError("severity is only valid on flare entries")
            if self.severity not in SEVERITIES:
                raise EntryValidationError(f"Unknown severity: {self.severity!r}")
        if self.energy_level is not None:
            if self.entry_type != "energy":
                raise EntryValidationError("energy_level is only valid on energy entries")
            if self.energy_level not in ENERGY_LEVELS:
                raise EntryValidationError(f"Unknown energy level: {self.energy_level!r}")
        self.symptoms = clean_labels(self.symptoms)
        self.medications = clean_labels(self.medications)
        self.triggers = clean_labels(self.triggers)

    @property
    def local_date(self) -> date:
        """Calendar date of the event in the timestamp's own offset."""
        return self.timestamp.date()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class EngagementState:
    """Per-user gamification state: streaks, totals and earned badges."""

    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    total_logs: int = 0
    badges: list[str] = field(default_factory=list)
    last_log_date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "total_logs": self.total_logs,
            "badges": list(self.badges),
            "last_log_date": self.last_log_date.isoformat() if self.last_log_date else None,
        }


@dataclass
class Correlation:
    """A derived trigger -> outcome pattern for one user."""

    trigger_type: str  # 'trigger', 'medication', 'activity', 'weather', 'physiological'
    trigger_value: str
    outcome_type: str  # 'severity' or 'flare'
    outcome_value: str
    occurrence_count: int
    avg_delay_minutes: int
    confidence: float
    last_occurred: str | None = None  # ISO 8601
    user_id: str = ""
    id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WeeklyReport:
    """Recomputable summary of one user's calendar week. Immutable once computed."""

    user_id: str
    week_start: date
    week_end: date
    health_score: int
    flare_count: int
    avg_severity: float
    logging_consistency: int
    days_with_entries: int
    trend: str  # 'improving' | 'worsening' | 'stable'
    top_symptoms: list[dict[str, Any]] = field(default_factory=list)
    top_triggers: list[dict[str, Any]] = field(default_factory=list)
    top_correlations: list[dict[str, Any]] = field(default_factory=list)
    key_insights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["week_start"] = self.week_start.isoformat()
        data["week_end"] = self.week_end.isoformat()
        return data


@dataclass
class ReportShare:
    """A one-time, password-protected, expiring clinician share."""

    token: str
    user_id: str
    password_hash: str
    expires_at: str  # ISO 8601
    physician_name: str = ""
    created_at: str = ""
