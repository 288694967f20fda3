"""Engagement tracker — streak, total and badge transitions for one new log.

Pure functions: the caller loads the previous engagement row, calls
``record_log`` with the calendar date of the newly saved entry, and writes
the returned state back (last write wins).

Streak state machine, keyed by ``last_log_date``:

* no prior log              -> streak 1
* same day                  -> unchanged (a day is counted once)
* exactly the day before    -> streak + 1
* older than the day before -> streak restarts at 1
* earlier than last log     -> backdated entry, streak and date unchanged
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, timedelta

from jvala.core.storage.models import EngagementState, FlareEntry
from jvala.domains.flares.domain_logic.badges import Badge, BadgeContext, evaluate_badges


@dataclass(frozen=True)
class LabelStats:
    """Per-user counts the breadth and insight badges look at."""

    distinct_symptoms: int = 0
    distinct_triggers: int = 0
    correlation_count: int = 0


@dataclass
class EngagementUpdate:
    """Result of recording one log."""

    engagement: EngagementState
    new_badges: list[str] = field(default_factory=list)
    streak_increased: bool = False


def _advance_streak(previous: EngagementState, log_date: date) -> tuple[int, date | None, bool]:
    last = previous.last_log_date
    if last is None:
        return 1, log_date, True
    if log_date == last:
        return previous.current_streak, last, False
    if log_date < last:
        return previous.current_streak, last, False
    if log_date - last == timedelta(days=1):
        return previous.current_streak + 1, log_date, True
    return 1, log_date, True


def record_log(
    previous: EngagementState | None,
    log_date: date,
    entry: FlareEntry | None = None,
    stats: LabelStats | None = None,
    *,
    user_id: str = "",
    catalog: tuple[Badge, ...] | None = None,
) -> EngagementUpdate:
    """Apply one new entry to a user's engagement state.

    Args:
        previous: The stored engagement row, or None before the first log.
        log_date: Calendar date of the new entry.
        entry: The entry just saved, for content-based badges.
        stats: Distinct-label and correlation counts, including this entry.
        user_id: Owner, used when ``previous`` is None.
        catalog: Badge catalog override (defaults to the packaged one).

    Returns:
        The new state, badges earned by this log, and whether a new
        calendar day was counted.
    """
    if previous is None:
        previous = EngagementState(user_id=user_id or (entry.user_id if entry else ""))

    streak, last_log_date, counted = _advance_streak(previous, log_date)
    longest = max(previous.longest_streak, streak)
    total = previous.total_logs + 1

    stats = stats or LabelStats()
    context = BadgeContext(
        current_streak=streak,
        longest_streak=longest,
        total_logs=total,
        entry=entry,
        distinct_symptoms=stats.distinct_symptoms,
        distinct_triggers=stats.distinct_triggers,
        correlation_count=stats.correlation_count,
    )
    new_badges = evaluate_badges(context, previous.badges, catalog)

    state = replace(
        previous,
        current_streak=streak,
        longest_streak=longest,
        total_logs=total,
        badges=list(previous.badges) + new_badges,
        last_log_date=last_log_date,
    )
    return EngagementUpdate(engagement=state, new_badges=new_badges, streak_increased=counted)


def longest_run(dates: list[date]) -> int:
    """Length of the longest run of consecutive calendar dates."""
    days = sorted(set(dates))
    best = run = 0
    previous: date | None = None
    for day in days:
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        best = max(best, run)
        previous = day
    return best
