"""Jvala server entry point — ``python -m jvala.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from jvala.core.config.settings import get_settings
from jvala.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the Jvala MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.jvala_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger = logging.getLogger(__name__)
    if not settings.jvala_allow_insecure_bind and not _is_loopback_host(settings.jvala_host):
        raise RuntimeError(
            "Refusing to bind the Jvala server to a non-loopback host without an auth layer. "
            "Set JVALA_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting Jvala flare tracker on %s:%d",
        settings.jvala_host,
        settings.jvala_port,
    )

    mcp = create_app(settings_override=settings)
    mcp.run(
        transport="streamable-http",
        host=settings.jvala_host,
        port=settings.jvala_port,
    )


if __name__ == "__main__":
    run()
