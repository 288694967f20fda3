"""MCP tools for viewing the audit trail.

The audit log is PHI-free: it records which tools were used, when, and
whether a note was sent to an external LLM, but never any health data.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from jvala.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 30,
        user_id: str = "",
    ) -> str:
        """View recent data access events and LLM disclosure counts.

        Args:
            days: Number of days to look back (default: 30).
            user_id: Only show this user's events.
        """
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        total_events = audit_logger.count_events(since=since)
        disclosure_count = audit_logger.count_disclosures(since=since)
        recent_events = audit_logger.get_events(since=since, user_id=user_id or None, limit=20)

        display_events = []
        for event in recent_events:
            display_events.append({
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "tool_name": event.get("tool_name"),
                "llm_provider": event.get("llm_provider"),
                "llm_disclosed": bool(event.get("llm_disclosed")),
                "status": event.get("status"),
                "duration_ms": event.get("duration_ms"),
            })

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": total_events,
            "llm_disclosures": disclosure_count,
            "recent_events": display_events,
            "note": (
                "This audit trail contains no health data. "
                "It tracks tool usage and whether notes were sent to external LLMs."
            ),
        }, indent=2)
