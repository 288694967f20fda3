"""Concrete ContextProvider implementations."""

from __future__ import annotations

from typing import Any

from jvala.domains.flares.connectors.mock_data import (
    get_mock_environmental,
    get_mock_physiological,
)


class MockContextProvider:
    """Returns fixed mock snapshots. Always available."""

    async def get_environmental(self, location: dict[str, Any] | None) -> dict[str, Any] | None:
        city = (location or {}).get("city") or "Austin"
        return get_mock_environmental(city)

    async def get_physiological(self) -> dict[str, Any] | None:
        return get_mock_physiological()

    @property
    def data_source(self) -> str:
        return "mock"


class NullContextProvider:
    """No context source configured: every snapshot is absent."""

    async def get_environmental(self, location: dict[str, Any] | None) -> dict[str, Any] | None:
        return None

    async def get_physiological(self) -> dict[str, Any] | None:
        return None

    @property
    def data_source(self) -> str:
        return "none"


def create_context_provider(name: str) -> MockContextProvider | NullContextProvider:
    """Build the provider named in settings ('mock' or 'none')."""
    if name == "mock":
        return MockContextProvider()
    if name == "none":
        return NullContextProvider()
    raise ValueError(f"Unknown context provider: {name}")
