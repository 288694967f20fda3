"""Badge catalog — loads badge definitions from YAML and evaluates them.

Every badge is a threshold on one metric of a ``BadgeContext``. Metrics only
grow (or reset, for streaks, without revoking what was earned), so each
predicate is monotonic and the earned set is a pure union.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from jvala.core.storage.models import FlareEntry

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "badges.yaml"

# Entry fields that count towards the "detailed entry" badge.
DETAIL_FIELDS = ("severity", "energy_level", "symptoms", "medications", "triggers", "note")


class BadgeCatalogError(Exception):
    """Raised when a badge catalog file is missing or malformed."""


@dataclass(frozen=True)
class Badge:
    """One badge definition."""

    id: str
    name: str
    description: str
    category: str
    rarity: str
    metric: str
    threshold: int


@dataclass(frozen=True)
class BadgeContext:
    """Everything a badge predicate may look at, after the streak update."""

    current_streak: int
    longest_streak: int
    total_logs: int
    entry: FlareEntry | None = None
    distinct_symptoms: int = 0
    distinct_triggers: int = 0
    correlation_count: int = 0

    def metric(self, name: str) -> int:
        """Return the value of a named metric for threshold comparison."""
        if name == "detail_fields":
            return count_detail_fields(self.entry)
        if name == "note_length":
            return len(self.entry.note or "") if self.entry is not None else 0
        if name == "comeback_streak":
            # Only a streak rebuilt below an earlier, longer one counts.
            if self.longest_streak > self.current_streak:
                return self.current_streak
            return 0
        value = getattr(self, name, None)
        if not isinstance(value, int):
            raise BadgeCatalogError(f"Unknown badge metric: {name!r}")
        return value


def count_detail_fields(entry: FlareEntry | None) -> int:
    """Count the filled detail fields on an entry."""
    if entry is None:
        return 0
    return sum(1 for name in DETAIL_FIELDS if getattr(entry, name))


def _parse_badge(data: dict[str, Any]) -> Badge:
    try:
        return Badge(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            description=str(data.get("description", "")).strip(),
            category=str(data.get("category", "")),
            rarity=str(data.get("rarity", "common")),
            metric=str(data["metric"]),
            threshold=int(data["threshold"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise BadgeCatalogError(f"Malformed badge definition {data!r}: {exc}") from exc


def load_badge_catalog(path: str | Path = DEFAULT_CATALOG_PATH) -> tuple[Badge, ...]:
    """Parse a YAML badge catalog into Badge definitions, in file order.

    Raises:
        BadgeCatalogError: If the file is missing, unparseable, or a badge
            is malformed or duplicated.
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise BadgeCatalogError(f"Cannot read badge catalog {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise BadgeCatalogError(f"Invalid YAML in badge catalog {path}: {exc}") from exc

    badges = tuple(_parse_badge(item) for item in data.get("badges", []))
    seen: set[str] = set()
    for badge in badges:
        if badge.id in seen:
            raise BadgeCatalogError(f"Duplicate badge id: {badge.id}")
        seen.add(badge.id)

    logger.info("Loaded %d badges from %s", len(badges), path)
    return badges


@lru_cache(maxsize=1)
def default_catalog() -> tuple[Badge, ...]:
    """The packaged badge catalog, loaded once per process."""
    return load_badge_catalog(DEFAULT_CATALOG_PATH)


def evaluate_badges(
    context: BadgeContext,
    earned: list[str] | tuple[str, ...] = (),
    catalog: tuple[Badge, ...] | None = None,
) -> list[str]:
    """Return the ids of badges newly earned in this context, in catalog order.

    Badges already in ``earned`` are never returned again.
    """
    catalog = default_catalog() if catalog is None else catalog
    already = set(earned)
    return [
        badge.id
        for badge in catalog
        if badge.id not in already and context.metric(badge.metric) >= badge.threshold
    ]
