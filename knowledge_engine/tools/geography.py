"""Country facts from the REST Countries API (keyless).

Returns ``SourceResult | None`` and never raises.
"""

from urllib.parse import quote

import structlog

from knowledge_engine.core.cache import CacheLayer, cache_key
from knowledge_engine.core.config import CacheKeys, settings
from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult

logger = structlog.get_logger(__name__)

_COUNTRY_URL = "https://restcountries.com/v3.1/name/{name}"
_CONFIDENCE = 0.9


def _calling_code(idd: dict) -> str | None:
    root = idd.get("root")
    if not root:
        return None
    suffixes = idd.get("suffixes") or []
    # Countries sharing a root (+1) list one suffix per area code; report the root alone.
    return root + (suffixes[0] if len(suffixes) == 1 else "")


def _normalize_country(c: dict) -> dict:
    name = c.get("name") or {}
    latlng = c.get("latlng") or [None, None]
    return {
        "name": name.get("common"),
        "official_name": name.get("official"),
        "code": c.get("cca2"),
        "capital": (c.get("capital") or [None])[0],
        "region": c.get("region"),
        "subregion": c.get("subregion"),
        "population": c.get("population"),
        "area_km2": c.get("area"),
        "languages": list((c.get("languages") or {}).values()),
        "currencies": [
            {"code": code, "name": info.get("name"), "symbol": info.get("symbol")}
            for code, info in (c.get("currencies") or {}).items()
        ],
        "flag": c.get("flag"),
        "flag_url": (c.get("flags") or {}).get("png"),
        "timezones": c.get("timezones") or [],
        "continents": c.get("continents") or [],
        "borders": c.get("borders") or [],
        "landlocked": c.get("landlocked"),
        "un_member": c.get("unMember"),
        "calling_code": _calling_code(c.get("idd") or {}),
        "tld": (c.get("tld") or [None])[0],
        "driving_side": (c.get("car") or {}).get("side"),
        "coordinates": {"lat": latlng[0], "lon": latlng[1] if len(latlng) > 1 else None},
        "maps": (c.get("maps") or {}).get("googleMaps"),
    }


def _pick_match(countries: list, query: str) -> dict | None:
    """Prefer an exact common-name match ("india" over "british indian ocean territory")."""
    candidates = [c for c in countries if isinstance(c, dict)]
    if not candidates:
        return None
    for c in candidates:
        if ((c.get("name") or {}).get("common") or "").lower() == query.lower():
            return c
    return candidates[0]


async def get_country_info(cache: CacheLayer, country: str) -> SourceResult | None:
    """Capital, population, languages, currencies and more for ``country``."""

    async def _fetch() -> SourceResult | None:
        data = await fetch_json("restcountries", _COUNTRY_URL.format(name=quote(country)))
        if not isinstance(data, list):
            return None
        match = _pick_match(data, country)
        if match is None:
            logger.info("geography.country_not_found", country=country)
            return None
        facts = _normalize_country(match)
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content=facts,
            confidence=_CONFIDENCE,
            source="REST Countries",
            title=facts["name"],
            image=facts["flag_url"],
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.COUNTRY, country), settings.CACHE_TTL_COUNTRY, _fetch
    )
