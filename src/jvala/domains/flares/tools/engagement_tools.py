"""MCP tools for streaks and badges."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from jvala.domains.flares.domain_logic.badges import default_catalog

if TYPE_CHECKING:
    from jvala.core.storage.repository import FlareRepository


def register_engagement_tools(mcp: FastMCP, repository: FlareRepository) -> None:
    """Register engagement tools on the MCP server."""

    @mcp.tool
    async def get_engagement(
        ctx: Context,
        user_id: str,
    ) -> str:
        """Show your logging streak, totals and earned badges.

        Args:
            user_id: Your user ID.
        """
        state = repository.get_engagement(user_id)
        catalog = {badge.id: badge for badge in default_catalog()}

        if state is None:
            return json.dumps({
                "status": "ok",
                "current_streak": 0,
                "longest_streak": 0,
                "total_logs": 0,
                "badges": [],
                "badges_available": len(catalog),
            })

        badges = []
        for badge_id in state.badges:
            badge = catalog.get(badge_id)
            badges.append({
                "id": badge_id,
                "name": badge.name if badge else badge_id,
                "description": badge.description if badge else "",
                "rarity": badge.rarity if badge else "",
            })

        return json.dumps({
            "status": "ok",
            **state.to_dict(),
            "badges": badges,
            "badges_available": len(catalog),
        }, indent=2)
