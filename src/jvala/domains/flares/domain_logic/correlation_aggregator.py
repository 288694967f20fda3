"""Correlation aggregation — trigger -> flare patterns from entry history.

Each entry contributes trigger-class events: tagged triggers, medications,
its own non-flare type, foods named in its note, the time of day of a
non-flare entry, and bucketed weather / wearable context. Each trigger
event is paired with the nearest *later* flare from a different entry
inside the lookahead window; pairs are grouped by
``(trigger_type, trigger_value, outcome_value)`` and scored.
"""

from __future__ import annotations

import bisect
import logging
import math
import re
import statistics
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from jvala.core.storage.models import Correlation, FlareEntry
from jvala.domains.flares.connectors.normalization import (
    normalize_environmental,
    normalize_physiological,
)

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD = timedelta(hours=72)
MIN_OCCURRENCES = 2
MIN_CONFIDENCE = 0.1

# Confidence coefficients (tunable)
COUNT_SCALE = 5.0
COUNT_CAP = 0.7
COUNT_FLOOR = 0.3
RECENCY_WINDOW_DAYS = 30
RECENCY_FLOOR = 0.5
EXPOSURE_FLOOR = 0.5

# "Ate pizza with friends." -> "pizza with friends"
_FOOD_PATTERN = re.compile(
    r"\b(?:ate|eating|had|consumed|drank|drinking)\s+(.+?)(?=[.,\n]|$)", re.IGNORECASE
)
_LEADING_ARTICLE = re.compile(r"^(?:a|an|the|some)\s+")


@dataclass(frozen=True)
class _Pair:
    trigger_type: str
    trigger_value: str
    outcome_type: str
    outcome_value: str
    delay_minutes: float
    outcome_time: datetime


# ---------------------------------------------------------------------------
# Context buckets
# ---------------------------------------------------------------------------

def weather_buckets(environmental: dict[str, Any] | None) -> list[str]:
    """Bucket an environmental snapshot into labels like ``high_humidity``."""
    env = normalize_environmental(environmental)
    if not env:
        return []

    buckets: list[str] = []
    weather = env.get("weather", {})

    t = weather.get("temperature")
    if t is not None:
        buckets.append(
            "freezing" if t < 32 else "cold" if t < 50 else "cool" if t < 68
            else "warm" if t < 85 else "hot"
        )
    h = weather.get("humidity")
    if h is not None:
        buckets.append(
            "low_humidity" if h < 30 else "moderate_humidity" if h < 60 else "high_humidity"
        )
    p = weather.get("pressure")
    if p is not None:
        buckets.append(
            "low_pressure" if p < 1005 else "normal_pressure" if p < 1020 else "high_pressure"
        )
    if weather.get("condition"):
        buckets.append(weather["condition"])

    aqi = env.get("air_quality", {}).get("aqi")
    if aqi is not None:
        buckets.append("good_air" if aqi <= 50 else "moderate_air" if aqi <= 100 else "poor_air")

    pollen = env.get("pollen", {})
    if pollen.get("grass", 0) > 50:
        buckets.append("high_grass_pollen")
    if pollen.get("tree", 0) > 50:
        buckets.append("high_tree_pollen")

    return buckets


def physiological_buckets(physiological: dict[str, Any] | None) -> list[str]:
    """Bucket a wearable snapshot into labels like ``poor_sleep``."""
    physio = normalize_physiological(physiological)
    if not physio:
        return []

    buckets: list[str] = []

    hr = physio.get("heart_rate")
    if hr:
        buckets.append(
            "low_hr" if hr < 60 else "normal_hr" if hr < 80 else "elevated_hr" if hr < 100
            else "high_hr"
        )
    hrv = physio.get("hrv")
    if hrv:
        buckets.append(
            "very_low_hrv" if hrv < 20 else "low_hrv" if hrv < 40 else "moderate_hrv" if hrv < 60
            else "high_hrv"
        )
    sleep = physio.get("sleep_hours")
    if sleep:
        buckets.append(
            "very_poor_sleep" if sleep < 5 else "poor_sleep" if sleep < 6
            else "fair_sleep" if sleep < 7 else "good_sleep" if sleep < 9 else "oversleep"
        )
    steps = physio.get("steps")
    if steps is not None:
        buckets.append(
            "sedentary" if steps < 3000 else "light_activity" if steps < 7000
            else "moderate_activity" if steps < 10000 else "high_activity"
        )
    spo2 = physio.get("spo2")
    if spo2:
        buckets.append("low_spo2" if spo2 < 94 else "normal_spo2")

    return buckets


def foods_from_note(note: str | None) -> list[str]:
    """Foods and drinks named after "ate", "had", "drank" and similar verbs."""
    foods: list[str] = []
    for match in _FOOD_PATTERN.finditer(note or ""):
        food = _LEADING_ARTICLE.sub("", match.group(1).strip().lower())
        if 1 < len(food) < 60:
            foods.append(food)
    return foods


def time_of_day(timestamp: datetime) -> str:
    """Bucket the wall-clock hour (in the timestamp's own offset)."""
    hour = timestamp.hour
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def trigger_events(entry: FlareEntry) -> list[tuple[str, str]]:
    """All ``(trigger_type, trigger_value)`` events one entry contributes, de-duplicated."""
    events: list[tuple[str, str]] = []
    events.extend(("trigger", label.lower()) for label in entry.triggers)
    events.extend(("medication", label.lower()) for label in entry.medications)
    if entry.entry_type != "flare":
        events.append(("activity", entry.entry_type))
        events.append(("time_of_day", time_of_day(entry.timestamp)))
    events.extend(("food", food) for food in foods_from_note(entry.note))
    events.extend(("weather", bucket) for bucket in weather_buckets(entry.environmental_data))
    events.extend(
        ("physiological", bucket) for bucket in physiological_buckets(entry.physiological_data)
    )
    return list(dict.fromkeys(events))


def outcome_of(entry: FlareEntry) -> tuple[str, str]:
    """``(outcome_type, outcome_value)`` for a flare: its severity, or plain ``flare``."""
    if entry.severity in ("mild", "moderate", "severe"):
        return "severity", entry.severity
    return "flare", "flare"


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def compute_confidence(
    occurrence_count: int,
    delays_minutes: list[float],
    last_occurred: datetime,
    now: datetime,
    exposures: int | None = None,
) -> float:
    """Score a pattern in [0, 1] as count_score * consistency * recency * exposure.

    * count_score grows with ``log2(n + 1)`` and never decreases in n.
    * consistency is ``1 / (1 + cv)`` of the delays, so scattered delays
      never raise it.
    * recency falls linearly from 1.0 to 0.5 over 30 days since the last
      observed outcome.
    * exposure is ``0.5 + 0.5 * n / exposures``: a trigger logged often but
      rarely followed by this outcome scores lower. ``None`` means every
      exposure was followed.
    """
    if occurrence_count <= 0:
        return 0.0

    count_score = min(
        min(math.log2(occurrence_count + 1) / COUNT_SCALE, COUNT_CAP) + COUNT_FLOOR, 1.0
    )

    mean_delay = statistics.fmean(delays_minutes) if delays_minutes else 0.0
    if len(delays_minutes) > 1 and mean_delay > 0:
        cv = statistics.pstdev(delays_minutes) / mean_delay
    else:
        cv = 0.0
    consistency = 1.0 / (1.0 + cv)

    age_days = max(0.0, (now - last_occurred).total_seconds() / 86400)
    recency = max(RECENCY_FLOOR, 1.0 - (1.0 - RECENCY_FLOOR) * age_days / RECENCY_WINDOW_DAYS)

    hit_rate = 1.0
    if exposures:
        hit_rate = min(1.0, occurrence_count / exposures)
    exposure = EXPOSURE_FLOOR + (1.0 - EXPOSURE_FLOOR) * hit_rate

    confidence = count_score * consistency * recency * exposure
    return round(max(0.0, min(1.0, confidence)), 4)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def _pair_events(
    entries: list[FlareEntry], lookahead: timedelta
) -> tuple[list[_Pair], Counter[tuple[str, str]]]:
    """Pair events with their next flare; also count every exposure to each event."""
    flares = [e for e in entries if e.entry_type == "flare"]
    flare_times = [f.timestamp for f in flares]

    pairs: list[_Pair] = []
    exposures: Counter[tuple[str, str]] = Counter()
    for entry in entries:
        events = trigger_events(entry)
        if not events:
            continue
        exposures.update(events)

        # Nearest flare strictly later than this entry, skipping the entry itself
        idx = bisect.bisect_right(flare_times, entry.timestamp)
        while idx < len(flares) and flares[idx].id == entry.id and entry.id:
            idx += 1
        if idx >= len(flares):
            continue
        outcome = flares[idx]
        delay = outcome.timestamp - entry.timestamp
        if delay > lookahead:
            continue

        outcome_type, outcome_value = outcome_of(outcome)
        for trigger_type, trigger_value in events:
            pairs.append(_Pair(
                trigger_type=trigger_type,
                trigger_value=trigger_value,
                outcome_type=outcome_type,
                outcome_value=outcome_value,
                delay_minutes=delay.total_seconds() / 60,
                outcome_time=outcome.timestamp,
            ))
    return pairs, exposures


def aggregate_correlations(
    entries: Iterable[FlareEntry],
    *,
    lookahead: timedelta = DEFAULT_LOOKAHEAD,
    min_occurrences: int = MIN_OCCURRENCES,
    min_confidence: float = MIN_CONFIDENCE,
    now: datetime | None = None,
) -> list[Correlation]:
    """Derive ranked trigger -> flare correlations from a user's entries.

    Args:
        entries: Entry history, in any order.
        lookahead: Maximum trigger-to-flare delay.
        min_occurrences: Groups observed fewer times are dropped.
        min_confidence: Groups scoring lower are dropped.
        now: Reference time for recency (defaults to the latest entry).

    Returns:
        Correlations sorted by confidence, then occurrence count (both
        descending), then trigger value. Empty when nothing pairs.
    """
    ordered = sorted(entries, key=lambda e: e.timestamp)
    if not ordered:
        return []
    if now is None:
        now = ordered[-1].timestamp

    pairs_found, exposures = _pair_events(ordered, lookahead)
    groups: dict[tuple[str, str, str, str], list[_Pair]] = {}
    for pair in pairs_found:
        key = (pair.trigger_type, pair.trigger_value, pair.outcome_type, pair.outcome_value)
        groups.setdefault(key, []).append(pair)

    user_id = ordered[0].user_id
    results: list[Correlation] = []
    for (trigger_type, trigger_value, outcome_type, outcome_value), pairs in groups.items():
        count = len(pairs)
        if count < min_occurrences:
            continue
        delays = [p.delay_minutes for p in pairs]
        last = max(p.outcome_time for p in pairs)
        confidence = compute_confidence(
            count, delays, last, now, exposures[(trigger_type, trigger_value)]
        )
        if confidence < min_confidence:
            continue
        results.append(Correlation(
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            outcome_type=outcome_type,
            outcome_value=outcome_value,
            occurrence_count=count,
            avg_delay_minutes=int(math.floor(statistics.fmean(delays) + 0.5)),
            confidence=confidence,
            last_occurred=last.isoformat(),
            user_id=user_id,
        ))

    results.sort(key=lambda c: (-c.confidence, -c.occurrence_count, c.trigger_value, c.trigger_type))
    logger.debug("Aggregated %d correlations from %d entries", len(results), len(ordered))
    return results
