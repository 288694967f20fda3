"""Mock context snapshots for development and testing.

Payloads deliberately use the mixed camelCase / snake_case spellings real
weather and wearable APIs return, so they exercise normalization.
"""

from __future__ import annotations

from typing import Any


def get_mock_environmental(city: str = "Austin") -> dict[str, Any]:
    """Return a mild, humid day."""
    return {
        "location": {"city": city, "latitude": 30.27, "longitude": -97.74},
        "weather": {
            "temperature": 78,
            "humidity": 72,
            "pressure": 1008,
            "condition": "Partly Cloudy",
        },
        "airQuality": {"us_aqi": 42},
        "pollen": {"grass_pollen": 12, "tree_pollen": 64},
    }


def get_mock_physiological() -> dict[str, Any]:
    """Return a slightly short night with otherwise typical readings."""
    return {
        "heartRate": 74,
        "restingHeartRate": 61,
        "hrvRmssd": 38,
        "sleep": {"totalMinutes": 350},
        "steps": 6400,
        "spo2": 97,
        "source": "mock",
    }
