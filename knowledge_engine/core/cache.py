"""In-memory TTL cache shared by every source fetcher.

Each entry carries its own TTL; readers additionally pass a ``max_age`` and
never receive data older than that window, even if the entry itself would
live longer. Expiry is lazy (checked on every access) plus an optional single
background sweep task that physically drops entries whose own TTL elapsed.

Usage:
    cache = CacheLayer()
    value = await cache.get("weather_new_york", max_age=600)
    await cache.set("weather_new_york", result, ttl=600)
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog
from cachetools import TLRUCache  # type: ignore[import-untyped]

from knowledge_engine.core.config import settings
from knowledge_engine.core.metrics import cache_hits_total, cache_misses_total

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_WHITESPACE_RUN = re.compile(r"\s+")


def cache_key(prefix: str, identifier: str) -> str:
    """Build ``"{prefix}_{identifier}"`` with the identifier lowercased and
    whitespace runs collapsed to a single underscore."""
    normalized = _WHITESPACE_RUN.sub("_", identifier.strip().lower())
    return f"{prefix}_{normalized}"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    data: Any
    stored_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


@dataclass(frozen=True, slots=True)
class CacheStats:
    hits: int
    misses: int
    sets: int
    size: int
    hit_rate: float  # percentage, 0.0-100.0


def _time_to_use(_key: str, entry: CacheEntry, _now: float) -> float:
    return entry.stored_at + entry.ttl


class CacheLayer:
    """Key/value store with per-entry TTL.

    Safe for concurrent use by many in-flight requests: every operation that
    touches entries runs under one asyncio.Lock. Concurrent writers to the
    same key resolve as last-write-wins.
    """

    def __init__(self, maxsize: int | None = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: TLRUCache = TLRUCache(
            maxsize=maxsize or settings.CACHE_MAX_ENTRIES,
            ttu=_time_to_use,
            timer=clock,
        )
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._sweeper: asyncio.Task | None = None

    async def get(self, key: str, max_age: float) -> Any | None:
        """Return the cached data if fresher than ``max_age`` seconds.

        A stale entry is evicted and reported as absent.
        """
        async with self._lock:
            entry: CacheEntry | None = self._entries.get(key)
            if entry is not None and self._clock() - entry.stored_at < max_age:
                self._hits += 1
                cache_hits_total.labels(cache_type=_cache_type(key)).inc()
                logger.debug("cache.hit", key_preview=key[:50])
                return entry.data

            if entry is not None:
                self._discard(key)
            self._misses += 1
            cache_misses_total.labels(cache_type=_cache_type(key)).inc()
            logger.debug("cache.miss", key_preview=key[:50])
            return None

    async def set(self, key: str, data: T, ttl: float) -> T:
        """Store ``data`` under ``key`` for ``ttl`` seconds, replacing any entry."""
        async with self._lock:
            self._entries[key] = CacheEntry(key=key, data=data, stored_at=self._clock(), ttl=ttl)
            self._sets += 1
        logger.debug("cache.set", key_preview=key[:50], ttl=ttl)
        return data

    async def has(self, key: str, max_age: float) -> bool:
        async with self._lock:
            entry: CacheEntry | None = self._entries.get(key)
            return entry is not None and self._clock() - entry.stored_at < max_age

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._discard(key)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
        logger.info("cache.cleared")

    async def get_or_fetch(
        self,
        key: str,
        ttl: float,
        fetch: Callable[[], Awaitable[T | None]],
    ) -> T | None:
        """Serve ``key`` from cache, else call ``fetch`` and cache a non-None result."""
        cached = await self.get(key, ttl)
        if cached is not None:
            return cached
        result = await fetch()
        if result is not None:
            await self.set(key, result, ttl)
        return result

    def keys(self) -> list[str]:
        """Keys of entries still within their own TTL."""
        # TLRUCache iterates expired-but-unswept keys too; get() filters them.
        return [k for k in list(self._entries) if self._entries.get(k) is not None]

    def stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            sets=self._sets,
            size=len(self.keys()),
            hit_rate=round(self._hits / lookups * 100, 2) if lookups else 0.0,
        )

    async def sweep(self) -> int:
        """Physically remove entries whose own TTL has elapsed.

        An entry refreshed by a later ``set`` carries the new timestamp, so a
        sweep never removes data written after the original entry expired.
        """
        async with self._lock:
            before = len(self._entries)
            self._entries.expire(self._clock())
            removed = before - len(self._entries)
        if removed:
            logger.debug("cache.sweep", removed=removed)
        return removed

    def start_sweeper(self, interval: float | None = None) -> None:
        """Start the single periodic sweep task (no-op if already running)."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        period = interval or settings.CACHE_SWEEP_INTERVAL
        self._sweeper = asyncio.create_task(self._sweep_forever(period))
        self._sweeper.add_done_callback(self._handle_sweeper_exit)
        logger.info("cache.sweeper_started", interval_seconds=period)

    async def aclose(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.sweep()

    def _discard(self, key: str) -> bool:
        # TLRUCache raises KeyError when deleting an already-expired entry,
        # after removing it.
        try:
            del self._entries[key]
        except KeyError:
            return False
        return True

    def _handle_sweeper_exit(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("cache.sweeper_failed", error=str(exc))


def _cache_type(key: str) -> str:
    return key.split("_", 1)[0]
