"""Helpers shared by the flare MCP tools: audit timing and error payloads."""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from jvala.core.audit.logger import AuditLogger


def audit_call(
    audit_logger: AuditLogger | None,
    tool_name: str,
    tool_input: Any,
    start_time: float,
    *,
    user_id: str | None = None,
    entry_id: str | None = None,
    error: BaseException | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Record one tool invocation with its duration, if auditing is enabled."""
    if audit_logger is None:
        return
    audit_logger.log_tool_call(
        tool_name=tool_name,
        tool_input=tool_input,
        user_id=user_id,
        entry_id=entry_id,
        duration_ms=(time.monotonic() - start_time) * 1000,
        status="failure" if error is not None else "success",
        error_type=type(error).__name__ if error is not None else None,
        metadata=metadata,
    )


def error_json(exc: BaseException, status: str = "error") -> str:
    """JSON payload for an expected, user-facing failure."""
    return json.dumps({
        "status": status,
        "error_type": type(exc).__name__,
        "message": str(exc),
    })


def not_found_json(kind: str, identifier: str) -> str:
    return json.dumps({
        "status": "not_found",
        f"{kind}_id": identifier,
        "message": f"No {kind} found with that ID.",
    })
