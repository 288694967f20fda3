"""Tests for weekly digest rendering and dispatch."""

from __future__ import annotations

from datetime import date

from jvala.core.storage.models import EngagementState, WeeklyReport
from jvala.domains.flares.dispatch.digest import (
    DigestSender,
    LoggingDigestSender,
    build_digest,
    dispatch_digest,
)


def _report(**overrides) -> WeeklyReport:
    defaults = dict(
        user_id="user-1",
        week_start=date(2024, 1, 7),
        week_end=date(2024, 1, 13),
        health_score=54,
        flare_count=2,
        avg_severity=2.0,
        logging_consistency=29,
        days_with_entries=2,
        trend="stable",
        top_symptoms=[{"name": "headache", "count": 2}],
        top_triggers=[{"name": "<stress>", "count": 1}],
        key_insights=["Manageable week with 2 flares."],
    )
    defaults.update(overrides)
    return WeeklyReport(**defaults)


class _BrokenSender:
    def send(self, destination, payload):
        raise ConnectionError("smtp down")


class TestBuildDigest:
    def test_subject_pluralizes(self):
        assert build_digest(_report()).subject == "Your Weekly Health Digest - 2 flares this week"
        assert build_digest(_report(flare_count=1)).subject.endswith("1 flare this week")

    def test_text_body(self):
        text = build_digest(_report()).text
        assert "Health score: 54/100 (stable)" in text
        assert "Top symptoms: headache (2)" in text
        assert "- Manageable week with 2 flares." in text
        assert "Day Streak" not in text

    def test_streak_included(self):
        payload = build_digest(_report(), EngagementState(user_id="user-1", current_streak=5))
        assert "5 Day Streak!" in payload.text
        assert "<strong>5 Day Streak!</strong>" in payload.html

    def test_html_escapes_labels(self):
        html = build_digest(_report()).html
        assert "&lt;stress&gt;" in html
        assert "<stress>" not in html


class TestDispatch:
    def test_logging_sender_records(self):
        sender = LoggingDigestSender()
        assert isinstance(sender, DigestSender)
        payload = build_digest(_report())
        assert dispatch_digest(sender, "me@example.com", payload) is True
        assert sender.sent == [("me@example.com", payload)]

    def test_failure_reported_not_raised(self):
        assert dispatch_digest(_BrokenSender(), "me@example.com", build_digest(_report())) is False
