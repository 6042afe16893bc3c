"""FallbackChainExecutor: finds one good answer when categorized sources came back empty.

Walks a short-circuiting chain of public knowledge sources, cheapest and most
direct first, and only fans out to every remaining source when no single step
produced a qualifying answer:

    1. direct answer (DuckDuckGo instant answer / abstract)
    2. encyclopedia summary (Wikipedia)
    3. dictionary, only for "define X" / "meaning of X" queries
    4. tech Q&A (Stack Overflow), only for technical queries
    5. every source not yet probed, concurrently, then ranked
    6. partial results when nothing reached the confidence floor
    7. not found

Each probe consults the shared cache, runs under its own timeout and turns any
failure into "no result". "Not found" is a value, never an exception.

The module also holds the ranking helpers (``rank_results``, ``select_best``,
``aggregate``). The chain ranks its full search with them and the
orchestrator ranks every result it gathered for a query.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Collection, Iterable, Sequence
from dataclasses import dataclass

import structlog

from knowledge_engine.core.cache import CacheLayer, cache_key
from knowledge_engine.core.config import CacheKeys, settings
from knowledge_engine.core.metrics import fallback_chain_outcomes_total, source_calls_total
from knowledge_engine.models.schemas import (
    AggregatedResult,
    FallbackOutcome,
    ResultType,
    SourceResult,
)
from knowledge_engine.tools.dictionary import lookup_word
from knowledge_engine.tools.search_duckduckgo import search_duckduckgo
from knowledge_engine.tools.search_stackexchange import search_stackexchange
from knowledge_engine.tools.search_wikipedia import search_wikipedia, search_wikipedia_pages

logger = structlog.get_logger(__name__)

SourceFetch = Callable[[str], Awaitable[SourceResult | None]]

# Lower number wins a confidence tie.
TYPE_PRIORITY: dict[ResultType, int] = {
    ResultType.INSTANT_ANSWER: 0,
    ResultType.ABSTRACT: 0,
    ResultType.DEFINITION: 0,
    ResultType.ENCYCLOPEDIA: 1,
    ResultType.DICTIONARY: 2,
    ResultType.TECH_QA: 3,
    ResultType.RELATED: 4,
    ResultType.SEARCH_RESULTS: 5,
    ResultType.LIVE_DATA: 6,
}

_DIRECT_TYPES = frozenset({ResultType.INSTANT_ANSWER, ResultType.ABSTRACT})

_TECH_KEYWORDS = (
    "code", "programming", "javascript", "python", "java", "how to", "error", "bug",
    "function", "api", "database", "sql", "html", "css", "react", "node", "npm", "git",
    "linux", "windows", "mac",
)  # fmt: skip
_TECH_PATTERN = re.compile(r"\b(" + "|".join(re.escape(k) for k in _TECH_KEYWORDS) + r")\b")
_DEFINITION_PATTERN = re.compile(r"(?:define|meaning of|what is a|what's a)\s+(\w+)")

_PARTIAL_MESSAGE = "Couldn't find a definitive answer, but here are some related results"
_NOT_FOUND_MESSAGE = "No results found"


def looks_like_tech_query(query: str) -> bool:
    """Default tech-query gate: any programming keyword as a whole word."""
    return _TECH_PATTERN.search(query.lower()) is not None


def extract_definition_term(query: str) -> str | None:
    match = _DEFINITION_PATTERN.search(query.lower())
    return match.group(1) if match else None


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def _rank_key(result: SourceResult) -> tuple[float, int]:
    return (-result.confidence, TYPE_PRIORITY.get(result.type, len(TYPE_PRIORITY)))


def rank_results(results: Iterable[SourceResult | None]) -> list[SourceResult]:
    """Sort by confidence descending; ties go to the more direct result type.

    The sort is stable, so equal results keep their arrival order.
    """
    return sorted((r for r in results if r is not None), key=_rank_key)


def select_best(
    results: Iterable[SourceResult | None], min_confidence: float = 0.0
) -> SourceResult | None:
    ranked = rank_results(results)
    if ranked and ranked[0].confidence >= min_confidence:
        return ranked[0]
    return None


def aggregate(results: Iterable[SourceResult | None]) -> AggregatedResult:
    ranked = rank_results(results)
    sources: list[str] = []
    for result in ranked:
        if result.source not in sources:
            sources.append(result.source)
    return AggregatedResult(
        all_results=ranked,
        best_answer=ranked[0] if ranked else None,
        sources_used=sources,
    )


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KnowledgeSource:
    """A named source probe. ``name`` doubles as the cache key prefix."""

    name: str
    fetch: SourceFetch


class FallbackChainExecutor:
    def __init__(
        self,
        cache: CacheLayer,
        *,
        direct: KnowledgeSource,
        encyclopedia: KnowledgeSource,
        dictionary: KnowledgeSource,
        tech_qa: KnowledgeSource,
        extra_sources: Sequence[KnowledgeSource] = (),
        is_tech_query: Callable[[str], bool] = looks_like_tech_query,
        probe_timeout: float | None = None,
        min_confidence: float | None = None,
    ):
        self._cache = cache
        self.direct = direct
        self.encyclopedia = encyclopedia
        self.dictionary = dictionary
        self.tech_qa = tech_qa
        self.extra_sources = tuple(extra_sources)
        self.is_tech_query = is_tech_query
        self.probe_timeout = (
            settings.FALLBACK_PROBE_TIMEOUT if probe_timeout is None else probe_timeout
        )
        self.min_confidence = (
            settings.FALLBACK_MIN_CONFIDENCE if min_confidence is None else min_confidence
        )

    async def find_best_answer(self, query: str) -> FallbackOutcome:
        """Run the chain for ``query`` and return its terminal outcome."""
        logger.info("search_fallback.start", query_preview=query[:80])
        probed: set[str] = set()
        collected: list[SourceResult] = []

        async def probe(source: KnowledgeSource, text: str) -> SourceResult | None:
            probed.add(source.name)
            result = await self._probe(source, text)
            if result is not None:
                collected.append(result)
            return result

        result = await probe(self.direct, query)
        if result is not None and result.type in _DIRECT_TYPES:
            return self._found(result, step="direct_answer", fallback_used=False)

        result = await probe(self.encyclopedia, query)
        if result is not None and result.content:
            return self._found(result, step="encyclopedia")

        term = extract_definition_term(query)
        if term:
            result = await probe(self.dictionary, term)
            if result is not None:
                return self._found(result, step="dictionary")

        if self.is_tech_query(query):
            result = await probe(self.tech_qa, query)
            if result is not None:
                return self._found(result, step="tech_qa")

        merged = await self.search_all(query, skip=probed, prior=collected)
        best = select_best(merged.all_results, self.min_confidence)
        if best is not None:
            return self._found(best, step="full_search", all_results=merged.all_results)

        if merged.all_results:
            fallback_chain_outcomes_total.labels(step="partial").inc()
            logger.info(
                "search_fallback.partial",
                query_preview=query[:80],
                result_count=len(merged.all_results),
                top_confidence=merged.all_results[0].confidence,
            )
            return FallbackOutcome(
                found=False,
                partial_results=merged.all_results,
                all_results=merged.all_results,
                fallback_used=True,
                message=_PARTIAL_MESSAGE,
            )

        fallback_chain_outcomes_total.labels(step="none").inc()
        logger.info("search_fallback.not_found", query_preview=query[:80])
        return FallbackOutcome(found=False, fallback_used=True, message=_NOT_FOUND_MESSAGE)

    async def search_all(
        self,
        query: str,
        skip: Collection[str] = (),
        prior: Iterable[SourceResult] = (),
    ) -> AggregatedResult:
        """Probe every source not named in ``skip`` concurrently and rank the union
        with ``prior`` results.

        The tech-QA source is included only for technical queries; the
        dictionary source needs a single word and is never part of the sweep.
        """
        sources = [self.direct, self.encyclopedia, *self.extra_sources]
        if self.is_tech_query(query):
            sources.append(self.tech_qa)
        pending = [s for s in sources if s.name not in skip]

        outcomes = await asyncio.gather(
            *(self._probe(s, query) for s in pending), return_exceptions=True
        )
        fresh: list[SourceResult] = []
        for source, outcome in zip(pending, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(
                    f"search_fallback.{source.name}_error", error=str(outcome), exc_info=outcome
                )
                continue
            if outcome is not None:
                fresh.append(outcome)

        merged = aggregate([*prior, *fresh])
        logger.info(
            "search_fallback.search_all_done",
            query_preview=query[:80],
            probed=[s.name for s in pending],
            result_count=len(merged.all_results),
        )
        return merged

    async def _probe(self, source: KnowledgeSource, text: str) -> SourceResult | None:
        """Cache lookup, then one bounded call. Failures and timeouts become None."""
        key = cache_key(source.name, text)
        ttl = settings.CACHE_TTL_SEARCH
        cached = await self._cache.get(key, ttl)
        if cached is not None:
            return cached

        try:
            async with asyncio.timeout(self.probe_timeout):
                result = await source.fetch(text)
        except TimeoutError:
            source_calls_total.labels(source=source.name, status="timeout").inc()
            logger.warning(
                "search_fallback.probe_timeout",
                source=source.name,
                timeout=self.probe_timeout,
                query_preview=text[:80],
            )
            return None
        except Exception:
            source_calls_total.labels(source=source.name, status="error").inc()
            logger.exception(
                "search_fallback.probe_error", source=source.name, query_preview=text[:80]
            )
            return None

        if result is None:
            source_calls_total.labels(source=source.name, status="empty").inc()
            return None

        await self._cache.set(key, result, ttl)
        return result

    def _found(
        self,
        result: SourceResult,
        *,
        step: str,
        fallback_used: bool = True,
        all_results: list[SourceResult] | None = None,
    ) -> FallbackOutcome:
        fallback_chain_outcomes_total.labels(step=step).inc()
        logger.info(
            "search_fallback.step_hit",
            step=step,
            source=result.source,
            result_type=result.type,
            confidence=result.confidence,
        )
        return FallbackOutcome(
            found=True,
            result=result,
            all_results=all_results or [result],
            fallback_used=fallback_used,
        )


def build_fallback_chain(cache: CacheLayer) -> FallbackChainExecutor:
    """Wire the chain to the public DuckDuckGo, Wikipedia, dictionary and Stack Exchange tools."""
    return FallbackChainExecutor(
        cache,
        direct=KnowledgeSource("duckduckgo", search_duckduckgo),
        encyclopedia=KnowledgeSource(CacheKeys.ENCYCLOPEDIA, search_wikipedia),
        dictionary=KnowledgeSource(CacheKeys.DICTIONARY, lookup_word),
        tech_qa=KnowledgeSource("stackexchange", search_stackexchange),
        extra_sources=[KnowledgeSource("wikisearch", search_wikipedia_pages)],
    )
