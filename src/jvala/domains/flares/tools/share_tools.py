"""MCP tools for sharing reports with a clinician.

A share is a random token plus a password. It expires, and it can be
opened exactly once.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from jvala.core.storage.repository import RepositoryError
from jvala.domains.flares.services.share_service import (
    ShareError,
    ShareExpired,
    ShareNotFound,
    SharePasswordMismatch,
)
from jvala.domains.flares.tools.common import audit_call, error_json

if TYPE_CHECKING:
    from jvala.core.audit.logger import AuditLogger
    from jvala.domains.flares.services.share_service import ShareService

logger = logging.getLogger(__name__)

_SHARE_STATUS = {
    ShareNotFound: "not_found",
    ShareExpired: "expired",
    SharePasswordMismatch: "unauthorized",
}


def register_share_tools(
    mcp: FastMCP,
    share_service: ShareService,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register clinician share tools on the MCP server."""

    @mcp.tool
    async def create_report_share(
        ctx: Context,
        user_id: str,
        password: str,
        expires_in_days: int | None = None,
        physician_name: str = "",
    ) -> str:
        """Create a one-time, password-protected link to your recent reports.

        Give the token and password to your clinician separately.

        Args:
            user_id: Your user ID.
            password: Password the clinician must supply.
            expires_in_days: Link lifetime (default: server setting, normally 7).
            physician_name: Who the report is for (shown on the report).
        """
        start_time = time.monotonic()
        try:
            share = share_service.create_share(user_id, password, expires_in_days, physician_name)
        except (ShareError, RepositoryError) as exc:
            audit_call(audit_logger, "create_report_share", {"expires_in_days": expires_in_days},
                       start_time, user_id=user_id, error=exc)
            return error_json(exc)

        audit_call(audit_logger, "create_report_share", {"expires_in_days": expires_in_days},
                   start_time, user_id=user_id)
        return json.dumps({
            "status": "created",
            "token": share.token,
            "expires_at": share.expires_at,
        })

    @mcp.tool
    async def open_report_share(
        ctx: Context,
        token: str,
        password: str,
    ) -> str:
        """Open a shared report (clinician side). The link is consumed on success.

        Args:
            token: The share token.
            password: The share password.
        """
        start_time = time.monotonic()
        try:
            report = share_service.open_share(token, password)
        except ShareError as exc:
            audit_call(audit_logger, "open_report_share", None, start_time, error=exc)
            return error_json(exc, status=_SHARE_STATUS.get(type(exc), "error"))
        except RepositoryError as exc:
            return error_json(exc)

        audit_call(audit_logger, "open_report_share", None, start_time)
        return json.dumps({"status": "ok", **report}, indent=2)
