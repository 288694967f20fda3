"""Tests for ShareService — one-time clinician report links."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from jvala.core.storage.models import EngagementState
from jvala.domains.flares.services.report_service import ReportService
from jvala.domains.flares.services.share_service import (
    ShareError,
    ShareExpired,
    ShareNotFound,
    SharePasswordMismatch,
    ShareService,
    hash_password,
)

NOW = datetime(2024, 1, 15, 12, tzinfo=timezone.utc)


@pytest.fixture
def service(flare_repository):
    return ShareService(flare_repository, expiry_days=7, report_weeks=4)


class TestCreate:
    def test_stores_hash_not_password(self, service, flare_repository):
        share = service.create_share("user-1", "s3cret", physician_name="Dr. Rao", now=NOW)
        stored = flare_repository.get_share(share.token)
        assert stored.password_hash == hash_password("s3cret")
        assert "s3cret" not in stored.password_hash
        assert stored.expires_at == (NOW + timedelta(days=7)).isoformat()

    def test_tokens_unique(self, service):
        a = service.create_share("user-1", "pw", now=NOW)
        b = service.create_share("user-1", "pw", now=NOW)
        assert a.token != b.token

    def test_password_required(self, service):
        with pytest.raises(ShareError, match="password"):
            service.create_share("user-1", "")

    def test_expiry_must_be_positive(self, service):
        with pytest.raises(ShareError, match="positive"):
            service.create_share("user-1", "pw", expires_in_days=0)


class TestOpen:
    def test_open_returns_reports_and_consumes(self, service, flare_repository):
        ReportService(flare_repository).generate_weekly_report("user-1", date(2024, 1, 10))
        flare_repository.save_engagement(EngagementState(user_id="user-1", current_streak=3, total_logs=9))
        share = service.create_share("user-1", "pw", physician_name="Dr. Rao", now=NOW)

        result = service.open_share(share.token, "pw", now=NOW + timedelta(hours=1))
        assert result["physician_name"] == "Dr. Rao"
        assert len(result["weekly_reports"]) == 1
        assert result["weekly_reports"][0]["week_start"] == "2024-01-07"
        assert result["engagement"] == {"current_streak": 3, "longest_streak": 0, "total_logs": 9}

        with pytest.raises(ShareNotFound):
            service.open_share(share.token, "pw", now=NOW + timedelta(hours=2))

    def test_wrong_password_keeps_share(self, service):
        share = service.create_share("user-1", "pw", now=NOW)
        with pytest.raises(SharePasswordMismatch):
            service.open_share(share.token, "guess", now=NOW)
        assert service.open_share(share.token, "pw", now=NOW)["engagement"]["total_logs"] == 0

    def test_expired_share_is_deleted(self, service, flare_repository):
        share = service.create_share("user-1", "pw", expires_in_days=1, now=NOW)
        with pytest.raises(ShareExpired):
            service.open_share(share.token, "pw", now=NOW + timedelta(days=1))
        assert flare_repository.get_share(share.token) is None

    def test_unknown_token(self, service):
        with pytest.raises(ShareNotFound):
            service.open_share("nope", "pw")
