"""World clock and calendar fetchers.

``get_world_time`` resolves a free-text location to an IANA zone, asks
worldtimeapi.org for the current time there, and computes it locally with
``zoneinfo`` when the API is unavailable. ``get_date_info`` is pure calendar
arithmetic; ``get_holidays`` reads public holidays from Nager.Date.
"""

import calendar
import re
from datetime import UTC, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError, available_timezones

import structlog

from knowledge_engine.core.cache import CacheLayer, cache_key
from knowledge_engine.core.config import CacheKeys, settings
from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult

logger = structlog.get_logger(__name__)

_WORLDTIME_URL = "https://worldtimeapi.org/api/timezone/{zone}"
_HOLIDAYS_URL = "https://date.nager.at/api/v3/PublicHolidays/{year}/{code}"
_MAX_HOLIDAYS = 15
_CONFIDENCE = 0.95

TIMEZONE_MAP: dict[str, str] = {
    "utc": "UTC", "gmt": "UTC",
    # North America
    "new york": "America/New_York", "nyc": "America/New_York", "boston": "America/New_York",
    "washington": "America/New_York", "washington dc": "America/New_York",
    "miami": "America/New_York", "atlanta": "America/New_York",
    "philadelphia": "America/New_York", "detroit": "America/Detroit",
    "chicago": "America/Chicago", "houston": "America/Chicago", "dallas": "America/Chicago",
    "minneapolis": "America/Chicago", "denver": "America/Denver", "phoenix": "America/Phoenix",
    "los angeles": "America/Los_Angeles", "san francisco": "America/Los_Angeles",
    "seattle": "America/Los_Angeles", "las vegas": "America/Los_Angeles",
    "honolulu": "Pacific/Honolulu", "hawaii": "Pacific/Honolulu", "alaska": "America/Anchorage",
    "toronto": "America/Toronto", "montreal": "America/Toronto", "vancouver": "America/Vancouver",
    "mexico city": "America/Mexico_City",
    # South America
    "sao paulo": "America/Sao_Paulo", "rio": "America/Sao_Paulo",
    "buenos aires": "America/Argentina/Buenos_Aires", "lima": "America/Lima",
    "bogota": "America/Bogota", "santiago": "America/Santiago", "caracas": "America/Caracas",
    # Europe
    "london": "Europe/London", "dublin": "Europe/Dublin", "lisbon": "Europe/Lisbon",
    "paris": "Europe/Paris", "berlin": "Europe/Berlin", "rome": "Europe/Rome",
    "madrid": "Europe/Madrid", "amsterdam": "Europe/Amsterdam", "brussels": "Europe/Brussels",
    "vienna": "Europe/Vienna", "zurich": "Europe/Zurich", "stockholm": "Europe/Stockholm",
    "oslo": "Europe/Oslo", "copenhagen": "Europe/Copenhagen", "helsinki": "Europe/Helsinki",
    "warsaw": "Europe/Warsaw", "prague": "Europe/Prague", "budapest": "Europe/Budapest",
    "athens": "Europe/Athens", "bucharest": "Europe/Bucharest", "kyiv": "Europe/Kyiv",
    "kiev": "Europe/Kyiv", "moscow": "Europe/Moscow", "istanbul": "Europe/Istanbul",
    # Asia
    "dubai": "Asia/Dubai", "abu dhabi": "Asia/Dubai", "riyadh": "Asia/Riyadh",
    "doha": "Asia/Qatar", "tehran": "Asia/Tehran", "jerusalem": "Asia/Jerusalem",
    "tel aviv": "Asia/Jerusalem", "karachi": "Asia/Karachi", "lahore": "Asia/Karachi",
    "mumbai": "Asia/Kolkata", "delhi": "Asia/Kolkata", "new delhi": "Asia/Kolkata",
    "bangalore": "Asia/Kolkata", "bengaluru": "Asia/Kolkata", "chennai": "Asia/Kolkata",
    "kolkata": "Asia/Kolkata", "hyderabad": "Asia/Kolkata", "dhaka": "Asia/Dhaka",
    "bangkok": "Asia/Bangkok", "jakarta": "Asia/Jakarta", "singapore": "Asia/Singapore",
    "kuala lumpur": "Asia/Kuala_Lumpur", "manila": "Asia/Manila", "hong kong": "Asia/Hong_Kong",
    "beijing": "Asia/Shanghai", "shanghai": "Asia/Shanghai", "taipei": "Asia/Taipei",
    "seoul": "Asia/Seoul", "tokyo": "Asia/Tokyo", "osaka": "Asia/Tokyo",
    # Oceania
    "sydney": "Australia/Sydney", "melbourne": "Australia/Melbourne",
    "brisbane": "Australia/Brisbane", "perth": "Australia/Perth",
    "adelaide": "Australia/Adelaide", "auckland": "Pacific/Auckland",
    "wellington": "Pacific/Auckland",
    # Africa
    "cairo": "Africa/Cairo", "lagos": "Africa/Lagos", "nairobi": "Africa/Nairobi",
    "johannesburg": "Africa/Johannesburg", "cape town": "Africa/Johannesburg",
    "casablanca": "Africa/Casablanca", "accra": "Africa/Accra",
    # Countries (capital or most populous zone)
    "usa": "America/New_York", "united states": "America/New_York",
    "uk": "Europe/London", "united kingdom": "Europe/London", "england": "Europe/London",
    "france": "Europe/Paris", "germany": "Europe/Berlin", "italy": "Europe/Rome",
    "spain": "Europe/Madrid", "russia": "Europe/Moscow", "turkey": "Europe/Istanbul",
    "india": "Asia/Kolkata", "pakistan": "Asia/Karachi", "china": "Asia/Shanghai",
    "japan": "Asia/Tokyo", "korea": "Asia/Seoul", "south korea": "Asia/Seoul",
    "australia": "Australia/Sydney", "new zealand": "Pacific/Auckland",
    "canada": "America/Toronto", "mexico": "America/Mexico_City",
    "brazil": "America/Sao_Paulo", "argentina": "America/Argentina/Buenos_Aires",
    "egypt": "Africa/Cairo", "nigeria": "Africa/Lagos", "kenya": "Africa/Nairobi",
    "south africa": "Africa/Johannesburg", "uae": "Asia/Dubai",
}  # fmt: skip


@lru_cache(maxsize=1)
def _zones_by_city() -> dict[str, str]:
    """``"buenos aires" -> "America/Argentina/Buenos_Aires"`` for every IANA zone."""
    zones: dict[str, str] = {}
    for zone in available_timezones():
        city = zone.rsplit("/", 1)[-1].replace("_", " ").lower()
        zones.setdefault(city, zone)
    return zones


def resolve_timezone(location: str) -> str | None:
    """Map free text to an IANA zone: exact alias, whole-word alias, then zone city."""
    text = location.strip().lower()
    if text in TIMEZONE_MAP:
        return TIMEZONE_MAP[text]

    # Longest alias first so "new delhi" wins over "delhi".
    for alias in sorted(TIMEZONE_MAP, key=len, reverse=True):
        if re.search(rf"\b{re.escape(alias)}\b", text):
            return TIMEZONE_MAP[alias]

    return _zones_by_city().get(text)


def _format_time(location: str, moment: datetime, zone: str, source: str) -> dict:
    offset = moment.strftime("%z")
    return {
        "location": location,
        "timezone": zone,
        "abbreviation": moment.tzname(),
        "datetime": moment.isoformat(),
        "time": moment.strftime("%I:%M:%S %p"),
        "time_24h": moment.strftime("%H:%M:%S"),
        "date": moment.strftime("%A, %B %d, %Y"),
        "utc_offset": f"{offset[:3]}:{offset[3:]}" if offset else "+00:00",
        "is_dst": bool(moment.dst()),
        "source": source,
    }


async def _time_from_api(location: str, zone: str) -> dict | None:
    data = await fetch_json("worldtimeapi", _WORLDTIME_URL.format(zone=zone), max_attempts=1)
    if not isinstance(data, dict) or "datetime" not in data:
        return None
    try:
        moment = datetime.fromisoformat(data["datetime"])
    except (TypeError, ValueError):
        logger.warning("time_world.bad_datetime", zone=zone, value=str(data.get("datetime"))[:40])
        return None
    report = _format_time(location, moment, data.get("timezone", zone), "WorldTimeAPI")
    report["abbreviation"] = data.get("abbreviation") or report["abbreviation"]
    report["is_dst"] = bool(data.get("dst", report["is_dst"]))
    return report


def _time_from_zoneinfo(location: str, zone: str, now: datetime | None = None) -> dict | None:
    try:
        tz = ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError):
        return None
    moment = (now or datetime.now(UTC)).astimezone(tz)
    return _format_time(location, moment, zone, "Local timezone database")


async def get_world_time(cache: CacheLayer, location: str) -> SourceResult | None:
    """Current local time at ``location``; None if the location can't be resolved."""
    zone = resolve_timezone(location)
    if zone is None:
        logger.info("time_world.unknown_location", location=location)
        return None

    async def _fetch() -> SourceResult | None:
        report = await _time_from_api(location, zone)
        if report is None:
            logger.info("time_world.api_fallback", location=location, zone=zone)
            report = _time_from_zoneinfo(location, zone)
        if report is None:
            return None
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content=report,
            confidence=_CONFIDENCE,
            source=report["source"],
            title=f"Time in {location}",
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.WORLD_TIME, location), settings.CACHE_TTL_WORLD_TIME, _fetch
    )


def get_date_info(now: datetime | None = None) -> SourceResult:
    """Calendar facts about ``now`` (defaults to the current local date)."""
    moment = now or datetime.now()
    year = moment.year
    day_of_year = moment.timetuple().tm_yday
    leap = calendar.isleap(year)
    iso_year, iso_week, _ = moment.isocalendar()

    return SourceResult(
        type=ResultType.LIVE_DATA,
        content={
            "date": moment.date().isoformat(),
            "formatted": moment.strftime("%A, %B %d, %Y"),
            "day_of_week": moment.strftime("%A"),
            "day_of_month": moment.day,
            "day_of_year": day_of_year,
            "week_number": iso_week,
            "month": moment.strftime("%B"),
            "month_number": moment.month,
            "year": year,
            "quarter": (moment.month - 1) // 3 + 1,
            "is_leap_year": leap,
            "is_weekend": moment.weekday() >= 5,
            "days_in_month": calendar.monthrange(year, moment.month)[1],
            "days_left_in_year": (366 if leap else 365) - day_of_year,
        },
        confidence=1.0,
        source="Date Calculator",
    )


async def get_holidays(
    cache: CacheLayer, country_code: str | None = None, year: int | None = None
) -> SourceResult | None:
    """Public holidays for an ISO 3166-1 alpha-2 ``country_code`` from Nager.Date."""
    code = (country_code or settings.DEFAULT_HOLIDAY_COUNTRY).upper()
    target_year = year or datetime.now().year

    async def _fetch() -> SourceResult | None:
        data = await fetch_json("nager.date", _HOLIDAYS_URL.format(year=target_year, code=code))
        if not isinstance(data, list) or not data:
            return None
        holidays = [
            {
                "date": h.get("date"),
                "name": h.get("localName"),
                "english_name": h.get("name"),
                "fixed": h.get("fixed"),
                "global": h.get("global"),
                "types": h.get("types") or [],
            }
            for h in data[:_MAX_HOLIDAYS]
            if isinstance(h, dict)
        ]
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content={"country": code, "year": target_year, "holidays": holidays},
            confidence=_CONFIDENCE,
            source="Nager.Date",
            title=f"Public holidays in {code} ({target_year})",
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.HOLIDAYS, f"{code} {target_year}"), settings.CACHE_TTL_HOLIDAYS, _fetch
    )
