"""Weekly metrics — turns one calendar week of entries into a WeeklyReport.

Scoring (all inputs restricted to entries dated inside the week):

    flare_score       = max(0, 100 - 15 * flare_count)
    severity_score    = max(0, 100 - 25 * avg_severity)
    consistency_bonus = 0.2 * logging_consistency
    health_score      = round(0.4 * flare_score + 0.4 * severity_score + consistency_bonus)

``health_score`` is clamped to [0, 100]. Rounding is half-up throughout, so
``logging_consistency`` for k logged days is ``round(100 * k / 7)``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from typing import Any

from jvala.core.storage.models import Correlation, FlareEntry, WeeklyReport

SEVERITY_ORDINALS = {"mild": 1, "moderate": 2, "severe": 3}

FLARE_PENALTY = 15
SEVERITY_PENALTY = 25
FLARE_WEIGHT = 0.4
SEVERITY_WEIGHT = 0.4
CONSISTENCY_WEIGHT = 0.2
TREND_THRESHOLD = 10
TOP_LABELS = 5
TOP_CORRELATIONS = 3


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def week_bounds(day: date) -> tuple[date, date]:
    """Return the (Sunday, Saturday) calendar week containing ``day``."""
    start = day - timedelta(days=(day.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def severity_ordinal(severity: Any) -> int | None:
    """Map a severity label to 1-3; ``none``, missing or unknown map to None."""
    if not isinstance(severity, str):
        return None
    return SEVERITY_ORDINALS.get(severity.lower())


def logging_consistency(days_with_entries: int) -> int:
    """Percentage of the 7-day week with at least one entry."""
    days = max(0, min(7, days_with_entries))
    return _round_half_up(100 * days / 7)


def health_score(flare_count: int, avg_severity: float, consistency: int) -> int:
    flare_score = max(0, 100 - FLARE_PENALTY * flare_count)
    severity_score = max(0.0, 100 - SEVERITY_PENALTY * avg_severity)
    consistency_bonus = CONSISTENCY_WEIGHT * consistency
    score = _round_half_up(
        FLARE_WEIGHT * flare_score + SEVERITY_WEIGHT * severity_score + consistency_bonus
    )
    return max(0, min(100, score))


def classify_trend(score: int, prior_score: int | None) -> str:
    """Compare against last week's score: >10 better, <-10 worse, else stable."""
    if prior_score is None:
        return "stable"
    diff = score - prior_score
    if diff > TREND_THRESHOLD:
        return "improving"
    if diff < -TREND_THRESHOLD:
        return "worsening"
    return "stable"


def top_labels(label_lists: Iterable[Sequence[str]], limit: int = TOP_LABELS) -> list[dict[str, Any]]:
    """Count labels case-insensitively; ties keep first-seen order.

    The first spelling seen is the one reported.
    """
    counts: dict[str, int] = {}
    names: dict[str, str] = {}
    for labels in label_lists:
        for label in labels or ():
            if not isinstance(label, str) or not label.strip():
                continue
            key = label.strip().lower()
            names.setdefault(key, label.strip())
            counts[key] = counts.get(key, 0) + 1
    # sorted() is stable, so equal counts stay in insertion order
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [{"name": names[key], "count": count} for key, count in ranked[:limit]]


def _key_insights(
    flare_count: int,
    consistency: int,
    top_triggers: list[dict[str, Any]],
    correlations: Sequence[Correlation],
    trend: str,
) -> list[str]:
    insights: list[str] = []

    if flare_count == 0:
        insights.append("Great week! No flares recorded.")
    elif flare_count <= 2:
        plural = "s" if flare_count > 1 else ""
        insights.append(f"Manageable week with {flare_count} flare{plural}.")
    else:
        insights.append(
            f"Challenging week with {flare_count} flares. Consider reviewing triggers."
        )

    if consistency >= 70:
        insights.append("Excellent logging consistency this week!")
    elif consistency < 30:
        insights.append("Try logging daily for better insights.")

    if top_triggers:
        top = top_triggers[0]
        insights.append(f"Top trigger: {top['name']} ({top['count']}x)")

    if correlations:
        top_corr = correlations[0]
        insights.append(f"Pattern detected: {top_corr.trigger_value} → {top_corr.outcome_value}")

    if trend == "improving":
        insights.append("You're trending better than last week! Keep it up.")
    elif trend == "worsening":
        insights.append("Slightly harder week than last. Be gentle with yourself.")

    return insights


def calculate_weekly_report(
    entries: Iterable[FlareEntry],
    week_start: date,
    prior_report: WeeklyReport | None = None,
    correlations: Sequence[Correlation] = (),
    *,
    user_id: str = "",
) -> WeeklyReport:
    """Compute the WeeklyReport for the 7 days starting at ``week_start``.

    Args:
        entries: Candidate entries; those dated outside the week are ignored.
        week_start: First day of the week (normally a Sunday).
        prior_report: Last week's report, for the trend label.
        correlations: The user's stored correlations, best first.
        user_id: Owner; defaults to the first in-range entry's user.

    Returns:
        A report that depends only on the inputs, so recomputing it gives
        an identical ``to_dict()``.
    """
    week_end = week_start + timedelta(days=6)
    in_range = sorted(
        (e for e in entries if week_start <= e.local_date <= week_end),
        key=lambda e: e.timestamp,
    )

    flares = [e for e in in_range if e.entry_type == "flare"]
    flare_count = len(flares)

    ordinals = [o for o in (severity_ordinal(e.severity) for e in flares) if o is not None]
    avg_severity = sum(ordinals) / len(ordinals) if ordinals else 0.0

    days_with_entries = len({e.local_date for e in in_range})
    consistency = logging_consistency(days_with_entries)
    score = health_score(flare_count, avg_severity, consistency)
    trend = classify_trend(score, prior_report.health_score if prior_report else None)

    top_symptoms = top_labels(e.symptoms for e in flares)
    top_triggers = top_labels(e.triggers for e in flares)

    correlations = list(correlations)
    top_correlations = [
        {
            "trigger": c.trigger_value,
            "outcome": c.outcome_value,
            "confidence": c.confidence,
        }
        for c in correlations[:TOP_CORRELATIONS]
    ]

    if not user_id:
        user_id = in_range[0].user_id if in_range else ""

    return WeeklyReport(
        user_id=user_id,
        week_start=week_start,
        week_end=week_end,
        health_score=score,
        flare_count=flare_count,
        avg_severity=avg_severity,
        logging_consistency=consistency,
        days_with_entries=days_with_entries,
        trend=trend,
        top_symptoms=top_symptoms,
        top_triggers=top_triggers,
        top_correlations=top_correlations,
        key_insights=_key_insights(flare_count, consistency, top_triggers, correlations, trend),
    )
