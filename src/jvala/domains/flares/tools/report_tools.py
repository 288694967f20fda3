"""MCP tools for weekly health reports and digests."""

from __future__ import annotations

import json
import logging
import time
from datetime import date
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from jvala.core.storage.repository import RepositoryError
from jvala.domains.flares.domain_logic.metrics_calculator import week_bounds
from jvala.domains.flares.tools.common import audit_call, error_json

if TYPE_CHECKING:
    from jvala.core.audit.logger import AuditLogger
    from jvala.domains.flares.services.report_service import ReportService

logger = logging.getLogger(__name__)


def _parse_day(value: str) -> date | None:
    return date.fromisoformat(value) if value else None


def register_report_tools(
    mcp: FastMCP,
    report_service: ReportService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register weekly report tools on the MCP server."""

    @mcp.tool
    async def generate_weekly_report(
        ctx: Context,
        user_id: str,
        day: str = "",
    ) -> str:
        """Compute (or recompute) your weekly health report.

        Scores the Sunday-Saturday week containing ``day``: health score,
        flare count, average severity, logging consistency, trend versus
        last week, top symptoms and triggers, and key insights.

        Args:
            user_id: Your user ID.
            day: Any date in the week (YYYY-MM-DD). Defaults to today.
        """
        start_time = time.monotonic()
        try:
            report = report_service.generate_weekly_report(user_id, _parse_day(day))
        except (ValueError, RepositoryError) as exc:
            audit_call(audit_logger, "generate_weekly_report", {"day": day}, start_time,
                       user_id=user_id, error=exc)
            return error_json(exc)

        audit_call(audit_logger, "generate_weekly_report", {"day": day}, start_time, user_id=user_id)
        return json.dumps({"status": "ok", "report": report.to_dict()}, indent=2)

    @mcp.tool
    async def get_weekly_report(
        ctx: Context,
        user_id: str,
        day: str = "",
    ) -> str:
        """Fetch a stored weekly report without recomputing it.

        Args:
            user_id: Your user ID.
            day: Any date in the week (YYYY-MM-DD). Omit to list recent reports.
        """
        if not day:
            reports = report_service.list_reports(user_id)
            return json.dumps({
                "status": "ok",
                "count": len(reports),
                "reports": [r.to_dict() for r in reports],
            }, indent=2)

        try:
            week_start, _ = week_bounds(date.fromisoformat(day))
        except ValueError as exc:
            return error_json(exc)

        report = report_service.get_weekly_report(user_id, week_start)
        if report is None:
            return json.dumps({
                "status": "not_found",
                "week_start": week_start.isoformat(),
                "message": "No report for that week. Call generate_weekly_report first.",
            })
        return json.dumps({"status": "ok", "report": report.to_dict()}, indent=2)

    @mcp.tool
    async def send_weekly_digest(
        ctx: Context,
        user_id: str,
        destination: str,
        day: str = "",
    ) -> str:
        """Generate this week's report and send it as a digest.

        Delivery is best effort: a failed send is reported, not retried.

        Args:
            user_id: Your user ID.
            destination: Email address or device token to deliver to.
            day: Any date in the week (YYYY-MM-DD). Defaults to today.
        """
        start_time = time.monotonic()
        try:
            result = report_service.send_weekly_digest(user_id, destination, _parse_day(day))
        except (ValueError, RepositoryError) as exc:
            audit_call(audit_logger, "send_weekly_digest", {"day": day}, start_time,
                       user_id=user_id, error=exc)
            return error_json(exc)

        audit_call(
            audit_logger, "send_weekly_digest", {"day": day}, start_time,
            user_id=user_id, metadata={"delivered": result.delivered},
        )
        return json.dumps({
            "status": "sent" if result.delivered else "delivery_failed",
            "subject": result.payload.subject,
            "week_start": result.report.week_start.isoformat(),
            "health_score": result.report.health_score,
        })
