"""Snapshot normalization — one canonical shape for context snapshots.

Wearable and weather payloads arrive with several spellings of the same
metric (``hrv`` / ``hrvRmssd`` / ``heart_rate_variability``, ``sleepDuration``
in hours / ``sleep.totalMinutes``, ``airQuality.us_aqi`` ...). They are
mapped to one snake_case dict at the store boundary, so nothing downstream
ever looks at an alias.

Canonical physiological snapshot (all keys optional)::

    {"heart_rate": 72, "resting_heart_rate": 60, "hrv": 45.0,
     "sleep_hours": 7.5, "steps": 8200, "spo2": 97, "source": "fitbit"}

Canonical environmental snapshot (all keys optional)::

    {"location": {"city": "Austin", "latitude": 30.3, "longitude": -97.7},
     "weather": {"temperature": 78.0, "humidity": 65, "pressure": 1012,
                 "condition": "clear"},
     "air_quality": {"aqi": 42},
     "pollen": {"grass": 10, "tree": 60}}

Non-numeric values for numeric metrics are dropped.
"""

from __future__ import annotations

from typing import Any

_PHYSIO_ALIASES: dict[str, tuple[str, ...]] = {
    "heart_rate": ("heart_rate", "heartRate", "hr", "bpm"),
    "resting_heart_rate": ("resting_heart_rate", "restingHeartRate", "resting_hr"),
    "hrv": ("hrv", "hrvRmssd", "hrv_rmssd", "heart_rate_variability", "heartRateVariability"),
    "steps": ("steps", "stepCount", "step_count"),
    "spo2": ("spo2", "spO2", "SpO2", "oxygen_saturation", "oxygenSaturation"),
}

_WEATHER_ALIASES: dict[str, tuple[str, ...]] = {
    "temperature": ("temperature", "temp", "temperature_f", "tempF"),
    "humidity": ("humidity", "relative_humidity", "relativeHumidity"),
    "pressure": ("pressure", "pressure_mb", "pressureMb", "surface_pressure"),
}


def _number(value: Any) -> float | int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return None
        return int(parsed) if parsed.is_integer() else parsed
    return None


def _first_number(data: dict[str, Any], aliases: tuple[str, ...]) -> float | int | None:
    for key in aliases:
        if key in data:
            value = _number(data[key])
            if value is not None:
                return value
    return None


def _sleep_hours(data: dict[str, Any]) -> float | None:
    for key in ("sleep_hours", "sleepHours", "sleepDuration", "sleep_duration"):
        value = _number(data.get(key))
        if value is not None:
            return float(value)
    sleep = data.get("sleep")
    minutes = None
    if isinstance(sleep, dict):
        minutes = _number(sleep.get("totalMinutes", sleep.get("total_minutes")))
    if minutes is None:
        minutes = _number(data.get("sleep_minutes", data.get("sleepMinutes")))
    if minutes is not None:
        return round(minutes / 60, 2)
    return None


def normalize_physiological(data: dict[str, Any] | None) -> dict[str, Any] | None:
    """Map a wearable payload to the canonical physiological snapshot.

    Returns None for a missing payload or one with no recognised metric.
    """
    if not isinstance(data, dict):
        return None

    result: dict[str, Any] = {}
    for canonical, aliases in _PHYSIO_ALIASES.items():
        value = _first_number(data, aliases)
        if value is not None:
            result[canonical] = value

    sleep_hours = _sleep_hours(data)
    if sleep_hours is not None:
        result["sleep_hours"] = sleep_hours

    if not result:
        return None

    source = data.get("source")
    if isinstance(source, str) and source:
        result["source"] = source
    return result


def normalize_environmental(data: dict[str, Any] | None) -> dict[str, Any] | None:
    """Map a weather / air-quality payload to the canonical environmental snapshot.

    Returns None for a missing payload or one with nothing recognised.
    """
    if not isinstance(data, dict):
        return None

    result: dict[str, Any] = {}

    location = data.get("location")
    if isinstance(location, dict):
        loc = {
            key: location[key]
            for key in ("city", "latitude", "longitude")
            if location.get(key) is not None
        }
        if loc:
            result["location"] = loc

    weather_raw = data.get("weather")
    if isinstance(weather_raw, dict):
        weather: dict[str, Any] = {}
        for canonical, aliases in _WEATHER_ALIASES.items():
            value = _first_number(weather_raw, aliases)
            if value is not None:
                weather[canonical] = value
        condition = weather_raw.get("condition")
        if isinstance(condition, str) and condition.strip():
            weather["condition"] = condition.strip().lower()
        if weather:
            result["weather"] = weather

    aq_raw = data.get("air_quality", data.get("airQuality"))
    if isinstance(aq_raw, dict):
        aqi = _first_number(aq_raw, ("aqi", "overall_aqi", "us_aqi", "european_aqi"))
        if aqi is not None:
            result["air_quality"] = {"aqi": aqi}

    pollen_raw = data.get("pollen")
    if isinstance(pollen_raw, dict):
        pollen = {}
        for canonical, aliases in (("grass", ("grass", "grass_pollen")), ("tree", ("tree", "tree_pollen"))):
            value = _first_number(pollen_raw, aliases)
            if value is not None:
                pollen[canonical] = value
        if pollen:
            result["pollen"] = pollen

    return result or None


def city_of(environmental: dict[str, Any] | None) -> str | None:
    """The city recorded in a canonical environmental snapshot, if any."""
    if not environmental:
        return None
    city = (environmental.get("location") or {}).get("city")
    return city if isinstance(city, str) and city else None
