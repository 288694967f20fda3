"""MCP tools for trigger -> flare correlation discovery."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from jvala.core.storage.repository import RepositoryError
from jvala.domains.flares.domain_logic.correlation_aggregator import MIN_CONFIDENCE
from jvala.domains.flares.tools.common import audit_call, error_json

if TYPE_CHECKING:
    from jvala.core.audit.logger import AuditLogger
    from jvala.domains.flares.services.correlation_service import CorrelationService

logger = logging.getLogger(__name__)


def register_correlation_tools(
    mcp: FastMCP,
    correlation_service: CorrelationService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register correlation tools on the MCP server."""

    @mcp.tool
    async def refresh_correlations(
        ctx: Context,
        user_id: str,
        lookahead_hours: int | None = None,
    ) -> str:
        """Re-scan your history for triggers that tend to precede flares.

        Each trigger, medication, activity and weather / wearable condition
        is paired with the next flare within the lookahead window. Patterns
        seen at least twice are scored and stored, replacing earlier results.

        Args:
            user_id: Your user ID.
            lookahead_hours: How long after a trigger a flare still counts
                (default: server setting, normally 72).
        """
        start_time = time.monotonic()
        try:
            correlations = correlation_service.refresh(user_id, lookahead_hours)
        except (ValueError, RepositoryError) as exc:
            audit_call(audit_logger, "refresh_correlations", {"lookahead_hours": lookahead_hours},
                       start_time, user_id=user_id, error=exc)
            return error_json(exc)

        audit_call(
            audit_logger, "refresh_correlations", {"lookahead_hours": lookahead_hours},
            start_time, user_id=user_id, metadata={"found": len(correlations)},
        )
        return json.dumps({
            "status": "ok",
            "count": len(correlations),
            "correlations": [c.to_dict() for c in correlations],
        }, indent=2)

    @mcp.tool
    async def list_correlations(
        ctx: Context,
        user_id: str,
        min_confidence: float = MIN_CONFIDENCE,
        limit: int = 20,
    ) -> str:
        """List your stored correlations, strongest first.

        Args:
            user_id: Your user ID.
            min_confidence: Hide patterns scoring below this (0-1).
            limit: Maximum patterns to return.
        """
        correlations = correlation_service.list_correlations(
            user_id, min_confidence=max(min_confidence, MIN_CONFIDENCE), limit=max(1, limit)
        )
        return json.dumps({
            "status": "ok",
            "count": len(correlations),
            "correlations": [c.to_dict() for c in correlations],
        }, indent=2)
