"""Context connectors — abstraction layer for weather and wearable snapshots."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ContextProvider(Protocol):
    """Abstract interface for best-effort context captured with an entry.

    Services call these methods without knowing whether data comes from a
    weather API, a wearable, or a mock generator. Either call may return
    None; a failure must never block saving the entry.
    """

    async def get_environmental(self, location: dict[str, Any] | None) -> dict[str, Any] | None:
        """Weather, air quality and pollen at a location."""
        ...

    async def get_physiological(self) -> dict[str, Any] | None:
        """Latest wearable readings: heart rate, HRV, sleep, steps, SpO2."""
        ...

    @property
    def data_source(self) -> str:
        """Label for the active source: 'mock' or 'none'."""
        ...
