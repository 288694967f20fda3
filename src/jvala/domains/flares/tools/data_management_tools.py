"""MCP tools for deleting a user's flare data (right to erasure).

All deletions are audit-logged.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from jvala.core.storage.repository import RepositoryError
from jvala.domains.flares.tools.common import error_json

if TYPE_CHECKING:
    from jvala.core.audit.logger import AuditLogger
    from jvala.core.storage.repository import FlareRepository

logger = logging.getLogger(__name__)


def register_data_management_tools(
    mcp: FastMCP,
    repository: FlareRepository,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register data management tools on the MCP server."""

    @mcp.tool
    async def delete_all_user_data(
        ctx: Context,
        user_id: str,
        confirm: str = "",
    ) -> str:
        """Permanently delete ALL of your entries, reports, correlations, streaks and shares.

        This cannot be undone.

        Args:
            user_id: Your user ID.
            confirm: Must be exactly 'DELETE_ALL' to proceed. Safety gate.
        """
        if confirm != "DELETE_ALL":
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "To delete all of your data, call this tool with "
                    "confirm='DELETE_ALL'. This action cannot be undone."
                ),
            })

        start_time = time.monotonic()
        try:
            count = repository.delete_user_data(user_id)
        except RepositoryError as exc:
            return error_json(exc)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None:
            audit_logger.log_data_delete(
                user_id=user_id,
                tool_name="delete_all_user_data",
                count=count,
                metadata={"confirmed": True},
            )

        return json.dumps({
            "status": "all_deleted",
            "entries_deleted": count,
            "duration_ms": round(elapsed_ms, 1),
            "message": "All of your data has been permanently deleted.",
        })
