from __future__ import annotations

from typing import Any, Mapping

from ..errors import ServiceError
from ..registry import CapabilityDescriptor, ConfigField, Metadata
from .base import REFRESH_RATE, TITLE, failure, ok, request_json

name = "weather"
title = "Weather"

GEOCODE_URL = "https://api.zippopotam.us/us/{zip_code}"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

def _zip_to_latlon(zip_code: str) -> tuple[float, float, str]:
    # US-only, no key. If you want international later, swap this out.
    js = request_json("GET", GEOCODE_URL.format(zip_code=zip_code), "Zippopotam", timeout=8)
    place = js["places"][0]
    lat = float(place["latitude"])
    lon = float(place["longitude"])
    label = f'{place["place name"]}, {place["state abbreviation"]}'
    return lat, lon, label

def fetch(cfg: Mapping[str, Any], instance_id=None, test: bool = False) -> dict[str, Any]:
    zip_code = str(cfg.get("zip_code", "")).strip()
    if not zip_code:
        return failure("weather zip_code not set")

    units = str(cfg.get("units", "imperial")).lower()
    try:
        lat, lon, label = _zip_to_latlon(zip_code)
        if test:
            return ok({"location": label})

        # Open-Meteo: current + hourly
        params = {
            "latitude": lat,
            "longitude": lon,
            "current": "temperature_2m,apparent_temperature,precipitation,weather_code,wind_speed_10m",
            "hourly": "temperature_2m,precipitation_probability,precipitation",
            "forecast_days": 1,
            "timezone": "auto",
        }
        if units == "imperial":
            params.update({"temperature_unit": "fahrenheit", "wind_speed_unit": "mph", "precipitation_unit": "inch"})

        js = request_json("GET", FORECAST_URL, "Open-Meteo", params=params, timeout=10)
    except ServiceError as e:
        return failure(str(e))

    current = js.get("current", {})
    hourly = js.get("hourly", {})

    return ok({
        "location": label,
        "temp": current.get("temperature_2m"),
        "feels_like": current.get("apparent_temperature"),
        "wind": current.get("wind_speed_10m"),
        "precip": current.get("precipitation"),
        "hourly_time": (hourly.get("time") or [])[:6],
        "hourly_temp": (hourly.get("temperature_2m") or [])[:6],
        "hourly_pop": (hourly.get("precipitation_probability") or [])[:6],
    })

def validate(cfg: Mapping[str, Any]) -> bool:
    zip_code = str(cfg.get("zip_code", "")).strip()
    return len(zip_code) == 5 and zip_code.isdigit()

descriptor = CapabilityDescriptor(
    metadata=Metadata(
        id=name,
        name=title,
        description="Current conditions and today's forecast from Open-Meteo",
        category="monitoring",
        icon="weather",
    ),
    fields=(
        TITLE,
        ConfigField(key="zip_code", label="ZIP Code", required=True, placeholder="10001"),
        ConfigField(
            key="units",
            label="Units",
            type="select",
            default="imperial",
            options=(("imperial", "Imperial"), ("metric", "Metric")),
        ),
        REFRESH_RATE,
    ),
    fetch=fetch,
    validate=validate,
)
