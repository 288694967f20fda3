"""Report service — weekly report generation, lookup and digest delivery."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from jvala.core.storage.models import WeeklyReport
from jvala.core.storage.repository import FlareRepository
from jvala.domains.flares.dispatch.digest import (
    DigestPayload,
    DigestSender,
    LoggingDigestSender,
    build_digest,
    dispatch_digest,
)
from jvala.domains.flares.domain_logic.correlation_aggregator import MIN_CONFIDENCE
from jvala.domains.flares.domain_logic.metrics_calculator import (
    TOP_CORRELATIONS,
    calculate_weekly_report,
    week_bounds,
)

logger = logging.getLogger(__name__)

# Widest UTC offset either side; entries are stored in UTC but belong to the
# calendar date of their own offset.
_OFFSET_PAD = timedelta(hours=14)


@dataclass
class DigestResult:
    report: WeeklyReport
    payload: DigestPayload
    delivered: bool


class ReportService:
    """Computes and stores one WeeklyReport per (user, week).

    Usage::

        reports = ReportService(repository)
        report = reports.generate_weekly_report("user-1", date(2024, 1, 3))
    """

    def __init__(self, repository: FlareRepository, sender: DigestSender | None = None) -> None:
        self._repo = repository
        self._sender = sender or LoggingDigestSender()

    def generate_weekly_report(self, user_id: str, day: date | None = None) -> WeeklyReport:
        """Recompute and upsert the report for the week containing ``day``.

        Args:
            user_id: Owner.
            day: Any date in the wanted Sunday-Saturday week (default: today, UTC).

        Raises:
            RepositoryError: If the report cannot be stored. Nothing is
                partially written.
        """
        day = day or datetime.now(timezone.utc).date()
        week_start, week_end = week_bounds(day)

        entries = self._repo.get_entries(
            user_id,
            since=datetime.combine(week_start, time.min, tzinfo=timezone.utc) - _OFFSET_PAD,
            until=datetime.combine(week_end, time.max, tzinfo=timezone.utc) + _OFFSET_PAD,
        )
        prior = self._repo.get_weekly_report(user_id, week_start - timedelta(days=7))
        correlations = self._repo.get_correlations(
            user_id, min_confidence=MIN_CONFIDENCE, limit=TOP_CORRELATIONS
        )

        report = calculate_weekly_report(
            entries, week_start, prior, correlations, user_id=user_id
        )
        self._repo.upsert_weekly_report(report)
        return report

    def get_weekly_report(self, user_id: str, week_start: date) -> WeeklyReport | None:
        return self._repo.get_weekly_report(user_id, week_start)

    def list_reports(self, user_id: str, *, limit: int = 12) -> list[WeeklyReport]:
        return self._repo.get_weekly_reports(user_id, limit=limit)

    def send_weekly_digest(
        self,
        user_id: str,
        destination: str,
        day: date | None = None,
    ) -> DigestResult:
        """Generate this week's report and hand a digest to the sender.

        A sender failure is logged and reported as ``delivered=False``.
        """
        report = self.generate_weekly_report(user_id, day)
        payload = build_digest(report, self._repo.get_engagement(user_id))
        delivered = dispatch_digest(self._sender, destination, payload)
        return DigestResult(report=report, payload=payload, delivered=delivered)
