"""Tests for streak, total and badge transitions."""

from __future__ import annotations

import random
from datetime import date, timedelta

import pytest
from conftest import make_entry

from jvala.core.storage.models import EngagementState
from jvala.domains.flares.domain_logic.engagement_tracker import (
    LabelStats,
    longest_run,
    record_log,
)

DAY1 = date(2024, 1, 1)


def _replay(dates: list[date]) -> EngagementState:
    state = None
    for day in dates:
        state = record_log(state, day, user_id="user-1").engagement
    return state


class TestStreaks:
    def test_first_log(self):
        update = record_log(None, DAY1, user_id="user-1")
        assert update.engagement.user_id == "user-1"
        assert update.engagement.current_streak == 1
        assert update.engagement.longest_streak == 1
        assert update.engagement.total_logs == 1
        assert update.engagement.last_log_date == DAY1
        assert update.streak_increased is True
        assert update.new_badges == ["first_log"]

    def test_same_day_counts_once(self):
        state = _replay([DAY1])
        update = record_log(state, DAY1)
        assert update.engagement.current_streak == 1
        assert update.engagement.total_logs == 2
        assert update.streak_increased is False

    def test_consecutive_day_extends(self):
        state = _replay([DAY1, DAY1 + timedelta(days=1)])
        assert state.current_streak == 2
        assert state.longest_streak == 2

    def test_gap_restarts(self):
        state = _replay([DAY1, DAY1 + timedelta(days=1), DAY1 + timedelta(days=3)])
        assert state.current_streak == 1
        assert state.longest_streak == 2

    def test_restart_still_counts_as_new_day(self):
        state = _replay([DAY1])
        update = record_log(state, DAY1 + timedelta(days=5))
        assert update.streak_increased is True
        assert update.engagement.current_streak == 1

    def test_backdated_entry_keeps_streak(self):
        state = _replay([DAY1 + timedelta(days=d) for d in range(3)])
        update = record_log(state, DAY1 - timedelta(days=10))
        assert update.engagement.current_streak == 3
        assert update.engagement.last_log_date == DAY1 + timedelta(days=2)
        assert update.engagement.total_logs == 4
        assert update.streak_increased is False

    def test_longest_never_below_current(self):
        state = _replay([DAY1 + timedelta(days=d) for d in (0, 1, 2, 5, 6)])
        assert state.longest_streak >= state.current_streak

    @pytest.mark.parametrize("seed", range(5))
    def test_longest_streak_matches_longest_run(self, seed):
        rng = random.Random(seed)
        offsets = sorted(rng.sample(range(60), 25))
        dates = [DAY1 + timedelta(days=o) for o in offsets]
        state = _replay(dates)
        assert state.longest_streak == longest_run(dates)
        assert state.total_logs == len(dates)


class TestBadges:
    def test_badges_awarded_once(self):
        state = _replay([DAY1])
        update = record_log(state, DAY1 + timedelta(days=1))
        assert "first_log" not in update.new_badges
        assert update.engagement.badges.count("first_log") == 1

    def test_streak_3(self):
        state = _replay([DAY1, DAY1 + timedelta(days=1)])
        update = record_log(state, DAY1 + timedelta(days=2))
        assert "streak_3" in update.new_badges

    def test_badges_not_revoked_when_streak_breaks(self):
        state = _replay([DAY1 + timedelta(days=d) for d in (0, 1, 2, 10)])
        assert "streak_3" in state.badges
        assert state.current_streak == 1

    def test_comeback_after_broken_streak(self):
        dates = [DAY1 + timedelta(days=d) for d in (0, 1, 2, 3, 10, 11)]
        state = _replay(dates)
        assert "streak_comeback" not in state.badges
        update = record_log(state, DAY1 + timedelta(days=12))
        assert "streak_comeback" in update.new_badges

    def test_no_comeback_on_first_streak(self):
        state = _replay([DAY1 + timedelta(days=d) for d in range(5)])
        assert "streak_comeback" not in state.badges

    def test_detailed_entry(self):
        entry = make_entry(severity="mild", symptoms=["headache"], note="after lunch")
        update = record_log(None, DAY1, entry, user_id="user-1")
        assert "detailed_first" in update.new_badges

    def test_long_note(self):
        entry = make_entry(note="x" * 501)
        assert "novel_writer" in record_log(None, DAY1, entry).new_badges
        short = make_entry(note="x" * 500)
        assert "novel_writer" not in record_log(None, DAY1, short).new_badges

    def test_breadth_and_insight_badges(self):
        stats = LabelStats(distinct_symptoms=10, distinct_triggers=25, correlation_count=5)
        new = record_log(None, DAY1, stats=stats, user_id="user-1").new_badges
        assert {"symptom_tracker", "trigger_detective", "trigger_master",
                "pattern_detective", "health_analyst"} <= set(new)
        assert "symptom_master" not in new
        assert "data_scientist" not in new

    def test_user_id_from_entry(self):
        update = record_log(None, DAY1, make_entry(user_id="user-9"))
        assert update.engagement.user_id == "user-9"


class TestLongestRun:
    def test_empty(self):
        assert longest_run([]) == 0

    def test_duplicates_and_order(self):
        dates = [DAY1 + timedelta(days=d) for d in (5, 0, 1, 1, 2, 7, 6)]
        assert longest_run(dates) == 3
