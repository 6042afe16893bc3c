"""Currency and cryptocurrency fetchers.

Exchange rates come from exchangerate-api.com (v4, keyless); coin prices and
market rankings from CoinGecko's public API. All functions return
``SourceResult | None`` and never raise.
"""

from typing import Any

import structlog

from knowledge_engine.core.cache import CacheLayer, cache_key
from knowledge_engine.core.config import CacheKeys, settings
from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult

logger = structlog.get_logger(__name__)

_RATES_URL = "https://api.exchangerate-api.com/v4/latest/{base}"
_COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"
_COINGECKO_MARKETS_URL = "https://api.coingecko.com/api/v3/coins/markets"
_CONFIDENCE = 0.95

_POPULAR_CURRENCIES = (
    "USD", "EUR", "GBP", "JPY", "INR", "CAD", "AUD", "CNY",
    "CHF", "SGD", "HKD", "KRW", "MXN", "BRL", "ZAR",
)  # fmt: skip
_PRICE_CURRENCIES = ("usd", "eur", "gbp", "inr", "jpy", "aud", "cad", "cny")


async def get_exchange_rates(cache: CacheLayer, base: str | None = None) -> SourceResult | None:
    """Latest rates against ``base`` (defaults to DEFAULT_CURRENCY_BASE)."""
    base_code = (base or settings.DEFAULT_CURRENCY_BASE).upper()

    async def _fetch() -> SourceResult | None:
        data = await fetch_json("exchangerate-api", _RATES_URL.format(base=base_code))
        if not isinstance(data, dict) or not isinstance(data.get("rates"), dict):
            return None
        rates: dict[str, float] = data["rates"]
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content={
                "base": data.get("base", base_code),
                "date": data.get("date"),
                "rates": rates,
                "popular_rates": {c: rates[c] for c in _POPULAR_CURRENCIES if c in rates},
            },
            confidence=_CONFIDENCE,
            source="ExchangeRate-API",
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.EXCHANGE_RATES, base_code), settings.CACHE_TTL_EXCHANGE_RATES, _fetch
    )


async def convert_currency(
    cache: CacheLayer, amount: float, from_currency: str, to_currency: str
) -> SourceResult | None:
    """Convert ``amount`` using the cached rate table for ``from_currency``."""
    source = from_currency.upper()
    target = to_currency.upper()
    rates = await get_exchange_rates(cache, source)
    if rates is None:
        return None
    rate = rates.content["rates"].get(target)
    if rate is None:
        logger.info("finance.unknown_currency", from_currency=source, to_currency=target)
        return None

    converted = round(amount * rate, 2)
    return SourceResult(
        type=ResultType.LIVE_DATA,
        content={
            "from": source,
            "to": target,
            "amount": amount,
            "rate": rate,
            "result": converted,
            "formatted": f"{amount:g} {source} = {converted:.2f} {target}",
        },
        confidence=_CONFIDENCE,
        source="ExchangeRate-API",
        details={"rates_date": rates.content.get("date")},
    )


async def get_crypto_price(cache: CacheLayer, name: str) -> SourceResult | None:
    """Spot price, 24h change, market cap and volume for one coin id."""
    coin_id = name.lower()

    async def _fetch() -> SourceResult | None:
        data = await fetch_json(
            "coingecko",
            _COINGECKO_PRICE_URL,
            params={
                "ids": coin_id,
                "vs_currencies": ",".join(_PRICE_CURRENCIES),
                "include_24hr_change": "true",
                "include_market_cap": "true",
                "include_24hr_vol": "true",
            },
        )
        coin: dict[str, Any] | None = data.get(coin_id) if isinstance(data, dict) else None
        if not coin:
            return None
        change = coin.get("usd_24h_change")
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content={
                "name": coin_id.capitalize(),
                "prices": {c.upper(): coin.get(c) for c in _PRICE_CURRENCIES if c in coin},
                "change_24h": round(change, 2) if change is not None else None,
                "market_cap": coin.get("usd_market_cap"),
                "volume_24h": coin.get("usd_24h_vol"),
            },
            confidence=_CONFIDENCE,
            source="CoinGecko",
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.CRYPTO_PRICE, coin_id), settings.CACHE_TTL_CRYPTO_PRICE, _fetch
    )


async def get_top_cryptos(cache: CacheLayer, limit: int | None = None) -> SourceResult | None:
    """Top coins by market cap."""
    count = limit or settings.TOP_CRYPTO_LIMIT

    async def _fetch() -> SourceResult | None:
        data = await fetch_json(
            "coingecko",
            _COINGECKO_MARKETS_URL,
            params={
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": count,
                "sparkline": "false",
                "price_change_percentage": "24h",
            },
        )
        if not isinstance(data, list) or not data:
            return None
        coins = [
            {
                "rank": coin.get("market_cap_rank"),
                "name": coin.get("name"),
                "symbol": (coin.get("symbol") or "").upper(),
                "price": coin.get("current_price"),
                "change_24h": coin.get("price_change_percentage_24h"),
                "market_cap": coin.get("market_cap"),
                "volume_24h": coin.get("total_volume"),
                "image": coin.get("image"),
            }
            for coin in data
            if isinstance(coin, dict)
        ]
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content={"cryptos": coins},
            confidence=_CONFIDENCE,
            source="CoinGecko",
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.TOP_CRYPTOS, str(count)), settings.CACHE_TTL_TOP_CRYPTOS, _fetch
    )
