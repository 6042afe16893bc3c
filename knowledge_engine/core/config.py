from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    # === Orchestration Budgets ===
    ORCHESTRATOR_BUDGET: float = Field(
        default=6.0,
        description="Wall-clock budget (seconds) for the categorized source fan-out.",
    )
    FALLBACK_PROBE_TIMEOUT: float = Field(
        default=5.0,
        description="Timeout (seconds) for each individual probe of the fallback chain.",
    )
    FALLBACK_MIN_CONFIDENCE: float = Field(
        default=0.65,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for a ranked full-search result to count as an answer.",
    )

    # === Outbound HTTP ===
    HTTP_TIMEOUT: float = 5.0
    HTTP_MAX_ATTEMPTS: int = 2
    HTTP_RETRY_BASE_DELAY: float = 0.25
    HTTP_RETRY_MAX_DELAY: float = 2.0
    HTTP_USER_AGENT: str = "knowledge-engine/0.1 (+https://github.com/knowledge-engine)"

    # === In-Memory Cache ===
    CACHE_MAX_ENTRIES: int = 10000
    CACHE_SWEEP_INTERVAL: float = 60.0

    # === Source Defaults ===
    DEFAULT_WEATHER_LOCATION: str = "New York"
    DEFAULT_CURRENCY_BASE: str = "USD"
    TOP_CRYPTO_LIMIT: int = 10
    DEFAULT_NEWS_TOPIC: str = "technology"
    DEFAULT_HOLIDAY_COUNTRY: str = "US"

    # === Cache TTL Configuration (seconds) ===
    CACHE_TTL_WORLD_TIME: int = Field(default=30, description="World clock lookups (30 s)")
    CACHE_TTL_WEATHER: int = Field(default=600, description="Weather reports (10 min)")
    CACHE_TTL_AIR_QUALITY: int = Field(default=1800, description="Air quality index (30 min)")
    CACHE_TTL_EXCHANGE_RATES: int = Field(default=3600, description="Exchange rates (1 hour)")
    CACHE_TTL_CRYPTO_PRICE: int = Field(default=60, description="Single coin price (1 min)")
    CACHE_TTL_TOP_CRYPTOS: int = Field(default=120, description="Top coins by cap (2 min)")
    CACHE_TTL_SEARCH: int = Field(default=1800, description="Web search probes (30 min)")
    CACHE_TTL_NEWS: int = Field(default=1800, description="News feed headlines (30 min)")
    CACHE_TTL_HACKER_NEWS: int = Field(default=600, description="Hacker News stories (10 min)")
    CACHE_TTL_COUNTRY: int = Field(default=86400, description="Country facts (24 hours)")
    CACHE_TTL_HOLIDAYS: int = Field(default=86400, description="Public holidays (24 hours)")

    @field_validator("ORCHESTRATOR_BUDGET", "FALLBACK_PROBE_TIMEOUT", "HTTP_TIMEOUT")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        """Validate time budgets (seconds)."""
        if v <= 0:
            raise ValueError("Timeouts must be > 0 seconds")
        if v > 120.0:
            raise ValueError("Timeouts must be <= 120 seconds")
        return v

    @field_validator("HTTP_MAX_ATTEMPTS")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError("HTTP_MAX_ATTEMPTS must be between 1 and 10")
        return v

    @field_validator(
        "CACHE_TTL_WORLD_TIME",
        "CACHE_TTL_WEATHER",
        "CACHE_TTL_AIR_QUALITY",
        "CACHE_TTL_EXCHANGE_RATES",
        "CACHE_TTL_CRYPTO_PRICE",
        "CACHE_TTL_TOP_CRYPTOS",
        "CACHE_TTL_SEARCH",
        "CACHE_TTL_NEWS",
        "CACHE_TTL_HACKER_NEWS",
        "CACHE_TTL_COUNTRY",
        "CACHE_TTL_HOLIDAYS",
    )
    @classmethod
    def validate_ttls(cls, v: int) -> int:
        """Validate cache TTL values."""
        if v < 1:
            raise ValueError("TTL must be >= 1 second")
        if v > 86400:
            raise ValueError("TTL must be <= 86400 seconds (24 hours max)")
        return v

    @field_validator("CACHE_MAX_ENTRIES")
    @classmethod
    def validate_cache_size(cls, v: int) -> int:
        """Validate cache size (number of entries)."""
        if v < 100:
            raise ValueError("CACHE_MAX_ENTRIES must be >= 100 entries (minimum useful size)")
        if v > 100000:
            raise ValueError("CACHE_MAX_ENTRIES must be <= 100000 entries (memory safety)")
        return v

    @field_validator("CACHE_SWEEP_INTERVAL")
    @classmethod
    def validate_sweep_interval(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError("CACHE_SWEEP_INTERVAL must be >= 1 second")
        return v

    @field_validator("TOP_CRYPTO_LIMIT")
    @classmethod
    def validate_top_crypto_limit(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("TOP_CRYPTO_LIMIT must be between 1 and 100")
        return v


# === Cache Key Prefixes ===
class CacheKeys:
    """Cache key prefixes, one per source category.

    Full keys are built with ``cache_key(prefix, identifier)``:
    ``"{prefix}_{normalized identifier}"``.
    """

    WORLD_TIME = "time"
    WEATHER = "weather"
    AIR_QUALITY = "aqi"
    EXCHANGE_RATES = "exchange"
    CRYPTO_PRICE = "crypto"
    TOP_CRYPTOS = "top_cryptos"
    NEWS = "news"
    HACKER_NEWS = "hn"
    COUNTRY = "country"
    HOLIDAYS = "holidays"
    # Shared by categorized fetchers and fallback probes of the same source.
    ENCYCLOPEDIA = "wikipedia"
    DICTIONARY = "dictionary"


settings = Settings()
