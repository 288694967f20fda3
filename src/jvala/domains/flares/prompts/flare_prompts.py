"""MCP Prompts — interaction templates for common flare-tracking journeys."""

from __future__ import annotations

from fastmcp import FastMCP


def register_flare_prompts(mcp: FastMCP) -> None:
    """Register flare tracking MCP prompts."""

    @mcp.prompt()
    def weekly_review_prompt(user_id: str) -> str:
        """Prompt template for reviewing the current week."""
        return f"""Let's review my week (user {user_id}). Please:

1. Generate my weekly report and explain the health score in plain language
2. Tell me how this week compares with last week
3. Point out my most frequent symptoms and triggers
4. Suggest one small, realistic thing to try next week

Please be encouraging. This is not medical advice and I know that."""

    @mcp.prompt()
    def trigger_investigation_prompt(user_id: str, trigger: str = "") -> str:
        """Prompt template for investigating what precedes my flares."""
        focus = f" Focus on '{trigger}'." if trigger else ""
        return f"""I want to understand what tends to come before my flares (user {user_id}).

Refresh my correlations, then walk me through the strongest patterns: how
often each one happened, the typical delay, and how confident the pattern is.
Be clear that these are associations in my own logs, not proven causes.{focus}"""

    @mcp.prompt()
    def quick_log_prompt(note: str) -> str:
        """Prompt template for logging an entry from a free-text note."""
        return f"""Here's how I'm doing: "{note}"

Classify this note, show me the suggested entry, and log it once I confirm."""
