"""Integration tests for the Jvala flare tracker MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from jvala.core.server.app import SERVER_NAME, create_app


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


ALL_EXPECTED_TOOLS = [
    "health_check",
    "log_entry",
    "edit_entry",
    "add_follow_up",
    "delete_entry",
    "list_entries",
    "classify_note",
    "generate_weekly_report",
    "get_weekly_report",
    "send_weekly_digest",
    "refresh_correlations",
    "list_correlations",
    "get_engagement",
    "create_report_share",
    "open_report_share",
    "audit_summary",
    "delete_all_user_data",
]


@pytest.fixture
def client(flare_repository):
    """Create an MCP client connected to a server on the in-memory store."""
    mcp = create_app(repository_override=flare_repository)
    return Client(mcp)


def _payload(result) -> dict:
    content = getattr(result, "content", result)
    return json.loads(content[0].text)


def test_server_starts_and_lists_tools(client):
    """Server should start and expose all registered tools."""
    async def _check():
        async with client:
            tools = await client.list_tools()
            tool_names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_health_check_returns_ok(client):
    """health_check should report status and the active collaborators."""
    async def _check():
        async with client:
            data = _payload(await client.call_tool("health_check", {}))
            assert data["status"] == "ok"
            assert data["server"] == SERVER_NAME
            assert data["classifier"] == "keyword"
            assert data["context_provider"] == "none"
            assert data["badges_available"] == 27
            assert data["entries_stored"] == 0
    _run(_check())


def test_health_check_counts_stored_entries(client):
    """The entry count reads the same SQLite connection the other tools use."""
    async def _check():
        async with client:
            await client.call_tool("log_entry", {
                "user_id": "user-1", "entry_type": "flare", "severity": "mild",
                "timestamp": "2024-01-08T09:00:00Z",
            })
            await client.call_tool("log_entry", {
                "user_id": "user-2", "entry_type": "energy", "energy_level": "low",
                "timestamp": "2024-01-08T10:00:00Z",
            })
            data = _payload(await client.call_tool("health_check", {}))
            assert data["entries_stored"] == 2
    _run(_check())


def test_prompts_registered(client):
    async def _check():
        async with client:
            prompts = await client.list_prompts()
            names = {p.name for p in prompts}
            assert {"weekly_review_prompt", "trigger_investigation_prompt", "quick_log_prompt"} <= names
    _run(_check())


def test_app_without_overrides_uses_in_memory_store():
    """No ENCRYPTION_KEY in the environment: the server still starts."""
    client = Client(create_app())

    async def _check():
        async with client:
            data = _payload(await client.call_tool("health_check", {}))
            assert data["status"] == "ok"
            assert data["entries_stored"] == 0
    _run(_check())
