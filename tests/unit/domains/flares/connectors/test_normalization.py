"""Tests for context snapshot normalization."""

from __future__ import annotations

from jvala.domains.flares.connectors.mock_data import (
    get_mock_environmental,
    get_mock_physiological,
)
from jvala.domains.flares.connectors.normalization import (
    city_of,
    normalize_environmental,
    normalize_physiological,
)


class TestPhysiological:
    def test_mock_payload(self):
        assert normalize_physiological(get_mock_physiological()) == {
            "heart_rate": 74,
            "resting_heart_rate": 61,
            "hrv": 38,
            "steps": 6400,
            "spo2": 97,
            "sleep_hours": 5.83,
            "source": "mock",
        }

    def test_aliases_map_to_one_key(self):
        for key in ("hrv", "hrvRmssd", "heart_rate_variability"):
            assert normalize_physiological({key: 45})["hrv"] == 45

    def test_sleep_duration_in_hours(self):
        assert normalize_physiological({"sleepDuration": 7.5})["sleep_hours"] == 7.5

    def test_numeric_strings_accepted(self):
        assert normalize_physiological({"heartRate": "72"})["heart_rate"] == 72

    def test_non_numeric_dropped(self):
        assert normalize_physiological({"heartRate": "fast", "steps": True}) is None

    def test_missing(self):
        assert normalize_physiological(None) is None
        assert normalize_physiological({"source": "fitbit"}) is None


class TestEnvironmental:
    def test_mock_payload(self):
        env = normalize_environmental(get_mock_environmental("Denver"))
        assert env["location"]["city"] == "Denver"
        assert env["weather"] == {
            "temperature": 78,
            "humidity": 72,
            "pressure": 1008,
            "condition": "partly cloudy",
        }
        assert env["air_quality"] == {"aqi": 42}
        assert env["pollen"] == {"grass": 12, "tree": 64}

    def test_canonical_is_stable(self):
        env = normalize_environmental(get_mock_environmental())
        assert normalize_environmental(env) == env

    def test_nothing_recognised(self):
        assert normalize_environmental({"foo": 1}) is None
        assert normalize_environmental("sunny") is None

    def test_city_of(self):
        assert city_of(normalize_environmental(get_mock_environmental("Austin"))) == "Austin"
        assert city_of(None) is None
        assert city_of({"weather": {"humidity": 50}}) is None
