"""Correlation service — recompute and store a user's trigger patterns."""

from __future__ import annotations

import logging
from datetime import timedelta

from jvala.core.storage.models import Correlation
from jvala.core.storage.repository import FlareRepository
from jvala.domains.flares.domain_logic.correlation_aggregator import (
    MIN_CONFIDENCE,
    aggregate_correlations,
)

logger = logging.getLogger(__name__)


class CorrelationService:
    """Runs the aggregator over recent history and replaces stored results.

    Usage::

        correlations = CorrelationService(repository, lookahead_hours=72)
        found = correlations.refresh("user-1")
    """

    def __init__(
        self,
        repository: FlareRepository,
        *,
        lookahead_hours: int = 72,
        history_limit: int = 1000,
    ) -> None:
        self._repo = repository
        self._lookahead_hours = lookahead_hours
        self._history_limit = history_limit

    def refresh(self, user_id: str, lookahead_hours: int | None = None) -> list[Correlation]:
        """Aggregate over the most recent entries and replace the stored set.

        Raises:
            RepositoryError: If the replacement fails; the previous set is kept.
        """
        hours = lookahead_hours if lookahead_hours is not None else self._lookahead_hours
        if hours <= 0:
            raise ValueError("lookahead_hours must be positive")

        entries = self._repo.get_entries(user_id, limit=self._history_limit)
        correlations = aggregate_correlations(entries, lookahead=timedelta(hours=hours))
        self._repo.replace_correlations(user_id, correlations)
        logger.info(
            "Refreshed correlations for %s: %d from %d entries",
            user_id, len(correlations), len(entries),
        )
        return correlations

    def list_correlations(
        self,
        user_id: str,
        *,
        min_confidence: float = MIN_CONFIDENCE,
        limit: int = 20,
    ) -> list[Correlation]:
        return self._repo.get_correlations(user_id, min_confidence=min_confidence, limit=limit)
