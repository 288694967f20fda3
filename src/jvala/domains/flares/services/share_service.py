"""Share service — one-time, password-protected report links for clinicians.

A share is opened at most once: a successful open deletes it, and so does
an attempt after expiry. A wrong password leaves the share in place.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jvala.core.storage.models import ReportShare
from jvala.core.storage.repository import FlareRepository

logger = logging.getLogger(__name__)


class ShareError(Exception):
    """Base class for report share failures."""


class ShareNotFound(ShareError):
    """No share exists for the token (never created, used, or deleted)."""


class ShareExpired(ShareError):
    """The share's expiry time has passed."""


class SharePasswordMismatch(ShareError):
    """The password does not match the share."""


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class ShareService:
    """Creates and opens clinician report shares.

    Usage::

        shares = ShareService(repository, expiry_days=7)
        token = shares.create_share("user-1", "s3cret", physician_name="Dr. Rao")
        report = shares.open_share(token, "s3cret")
    """

    def __init__(
        self,
        repository: FlareRepository,
        *,
        expiry_days: int = 7,
        report_weeks: int = 4,
    ) -> None:
        self._repo = repository
        self._expiry_days = expiry_days
        self._report_weeks = report_weeks

    def create_share(
        self,
        user_id: str,
        password: str,
        expires_in_days: int | None = None,
        physician_name: str = "",
        *,
        now: datetime | None = None,
    ) -> ReportShare:
        """Create a share and return it (the token is the link secret).

        Raises:
            ShareError: For an empty password or a non-positive expiry.
        """
        if not password:
            raise ShareError("A password is required to share a report")
        days = expires_in_days if expires_in_days is not None else self._expiry_days
        if days <= 0:
            raise ShareError("expires_in_days must be positive")

        now = now or datetime.now(timezone.utc)
        share = ReportShare(
            token=secrets.token_urlsafe(24),
            user_id=user_id,
            password_hash=hash_password(password),
            expires_at=(now + timedelta(days=days)).isoformat(),
            physician_name=physician_name,
            created_at=now.isoformat(),
        )
        self._repo.save_share(share)
        logger.info("Created report share for %s (expires %s)", user_id, share.expires_at)
        return share

    def open_share(
        self,
        token: str,
        password: str,
        *,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Verify a share and return the shared reports, consuming the share.

        Raises:
            ShareNotFound: Unknown or already used token.
            ShareExpired: The share has expired (it is deleted).
            SharePasswordMismatch: Wrong password (the share is kept).
        """
        share = self._repo.get_share(token)
        if share is None:
            raise ShareNotFound("Share not found or already used")

        now = now or datetime.now(timezone.utc)
        if now >= datetime.fromisoformat(share.expires_at):
            self._repo.delete_share(token)
            raise ShareExpired("Share has expired")

        if not hmac.compare_digest(share.password_hash, hash_password(password or "")):
            logger.warning("Wrong password for report share of %s", share.user_id)
            raise SharePasswordMismatch("Incorrect password")

        reports = self._repo.get_weekly_reports(share.user_id, limit=self._report_weeks)
        engagement = self._repo.get_engagement(share.user_id)
        correlations = self._repo.get_correlations(share.user_id, limit=5)

        self._repo.delete_share(token)
        logger.info("Report share for %s opened and consumed", share.user_id)

        return {
            "physician_name": share.physician_name,
            "generated_at": now.isoformat(),
            "weekly_reports": [r.to_dict() for r in reports],
            "engagement": {
                "current_streak": engagement.current_streak if engagement else 0,
                "longest_streak": engagement.longest_streak if engagement else 0,
                "total_logs": engagement.total_logs if engagement else 0,
            },
            "correlations": [
                {
                    "trigger_type": c.trigger_type,
                    "trigger": c.trigger_value,
                    "outcome": c.outcome_value,
                    "occurrences": c.occurrence_count,
                    "avg_delay_minutes": c.avg_delay_minutes,
                    "confidence": c.confidence,
                }
                for c in correlations
            ],
        }
