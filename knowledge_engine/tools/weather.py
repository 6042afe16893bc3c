"""Weather and air quality fetchers.

wttr.in (no key) for current conditions plus a three day forecast, and the
World Air Quality Index feed (public demo token) for AQI. Both return
``SourceResult | None`` and never raise.
"""

from typing import Any
from urllib.parse import quote

import structlog

from knowledge_engine.core.cache import CacheLayer, cache_key
from knowledge_engine.core.config import CacheKeys, settings
from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult

logger = structlog.get_logger(__name__)

_WTTR_URL = "https://wttr.in/{location}"
_WAQI_URL = "https://api.waqi.info/feed/{city}/"
_WAQI_TOKEN = "demo"
_CONFIDENCE = 0.95
_FORECAST_DAYS = 3
# wttr.in hourly slots are 3h apart; index 4 is midday.
_MIDDAY_SLOT = 4

# (upper bound, level, health implication), EPA scale
_AQI_LEVELS: list[tuple[float, str, str]] = [
    (50, "Good", "Air quality is satisfactory"),
    (100, "Moderate", "Acceptable; some pollutants may be a concern for sensitive groups"),
    (150, "Unhealthy for Sensitive Groups", "Sensitive groups may experience health effects"),
    (200, "Unhealthy", "Everyone may begin to experience health effects"),
    (300, "Very Unhealthy", "Health alert: everyone may experience serious effects"),
    (float("inf"), "Hazardous", "Health warning of emergency conditions"),
]


def _first_value(items: Any) -> str | None:
    """wttr.in wraps most strings as ``[{"value": "..."}]``."""
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0].get("value")
    return None


def _normalize_weather(data: dict, location: str) -> dict | None:
    conditions = data.get("current_condition") or []
    if not conditions:
        return None
    current = conditions[0]
    area = (data.get("nearest_area") or [{}])[0]

    forecast = []
    for day in (data.get("weather") or [])[:_FORECAST_DAYS]:
        hourly = day.get("hourly") or []
        midday = hourly[_MIDDAY_SLOT] if len(hourly) > _MIDDAY_SLOT else {}
        astronomy = (day.get("astronomy") or [{}])[0]
        forecast.append(
            {
                "date": day.get("date"),
                "max_temp_c": day.get("maxtempC"),
                "min_temp_c": day.get("mintempC"),
                "avg_temp_c": day.get("avgtempC"),
                "condition": _first_value(midday.get("weatherDesc")),
                "chance_of_rain": midday.get("chanceofrain"),
                "sunrise": astronomy.get("sunrise"),
                "sunset": astronomy.get("sunset"),
            }
        )

    return {
        "location": _first_value(area.get("areaName")) or location,
        "region": _first_value(area.get("region")),
        "country": _first_value(area.get("country")),
        "current": {
            "temperature_c": current.get("temp_C"),
            "temperature_f": current.get("temp_F"),
            "feels_like_c": current.get("FeelsLikeC"),
            "condition": _first_value(current.get("weatherDesc")),
            "humidity": current.get("humidity"),
            "wind_kmph": current.get("windspeedKmph"),
            "wind_direction": current.get("winddir16Point"),
            "pressure_mb": current.get("pressure"),
            "uv_index": current.get("uvIndex"),
            "precipitation_mm": current.get("precipMM"),
        },
        "forecast": forecast,
    }


async def get_weather(cache: CacheLayer, location: str) -> SourceResult | None:
    """Current conditions and short forecast for ``location``."""

    async def _fetch() -> SourceResult | None:
        data = await fetch_json(
            "wttr.in",
            _WTTR_URL.format(location=quote(location)),
            params={"format": "j1"},
        )
        if not isinstance(data, dict):
            return None
        report = _normalize_weather(data, location)
        if report is None:
            logger.info("weather.no_conditions", location=location)
            return None
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content=report,
            confidence=_CONFIDENCE,
            source="wttr.in",
            title=f"Weather in {report['location']}",
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.WEATHER, location), settings.CACHE_TTL_WEATHER, _fetch
    )


def classify_aqi(aqi: float) -> tuple[str, str]:
    """Map an AQI value to its (level, health implication)."""
    for upper, level, implication in _AQI_LEVELS:
        if aqi <= upper:
            return level, implication
    return _AQI_LEVELS[-1][1], _AQI_LEVELS[-1][2]


async def get_air_quality(cache: CacheLayer, city: str) -> SourceResult | None:
    """Air quality index for ``city``."""

    async def _fetch() -> SourceResult | None:
        data = await fetch_json(
            "waqi",
            _WAQI_URL.format(city=quote(city)),
            params={"token": _WAQI_TOKEN},
        )
        if not isinstance(data, dict) or data.get("status") != "ok":
            return None
        payload = data.get("data") or {}
        aqi = payload.get("aqi")
        # The feed reports "-" for stations with no reading.
        if not isinstance(aqi, (int, float)):
            return None
        level, implication = classify_aqi(aqi)
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content={
                "city": (payload.get("city") or {}).get("name") or city,
                "aqi": aqi,
                "level": level,
                "health_implication": implication,
                "dominant_pollutant": payload.get("dominentpol"),
                "measured_at": (payload.get("time") or {}).get("s"),
            },
            confidence=_CONFIDENCE,
            source="World Air Quality Index",
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.AIR_QUALITY, city), settings.CACHE_TTL_AIR_QUALITY, _fetch
    )
