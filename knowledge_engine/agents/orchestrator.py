"""SourceOrchestrator: time-bounded concurrent fan-out to categorized sources.

Pipeline for one query:
    1. analyze (IntentAnalyzer)
    2. one task per flagged category that has a fetcher, all under a single
       wall-clock budget; tasks still running at the deadline are cancelled
    3. if nothing came back, run the fallback chain on the search query
    4. rank everything collected so the caller can lead with the best answer

A failing or hung fetcher only ever costs its own category. The caller gets
whatever completed in time.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping

import structlog

from knowledge_engine.agents.intent import IntentAnalyzer
from knowledge_engine.agents.search_fallback import FallbackChainExecutor, aggregate
from knowledge_engine.core.cache import CacheLayer, cache_key
from knowledge_engine.core.config import CacheKeys, settings
from knowledge_engine.core.metrics import (
    orchestrator_deadline_exceeded_total,
    orchestrator_fanout_duration_seconds,
)
from knowledge_engine.models.schemas import (
    Category,
    FallbackOutcome,
    IntentAnalysis,
    KnowledgeResult,
    SourceResult,
)
from knowledge_engine.tools.dictionary import lookup_word
from knowledge_engine.tools.entertainment import get_joke, get_quote, get_trivia_question
from knowledge_engine.tools.finance import (
    convert_currency,
    get_crypto_price,
    get_exchange_rates,
    get_top_cryptos,
)
from knowledge_engine.tools.geography import get_country_info
from knowledge_engine.tools.math_eval import evaluate_expression
from knowledge_engine.tools.news import get_hacker_news, get_news
from knowledge_engine.tools.search_wikipedia import search_wikipedia
from knowledge_engine.tools.time_world import get_date_info, get_holidays, get_world_time
from knowledge_engine.tools.weather import get_air_quality, get_weather

logger = structlog.get_logger(__name__)

CategoryFetcher = Callable[[IntentAnalysis], Awaitable[SourceResult | None]]

# Categories whose absence of results should trigger the web fallback.
_FALLBACK_CATEGORIES = frozenset({Category.WEB_SEARCH, Category.ENCYCLOPEDIA})


class SourceOrchestrator:
    def __init__(
        self,
        fetchers: Mapping[Category, CategoryFetcher],
        fallback: FallbackChainExecutor | None = None,
        analyzer: IntentAnalyzer | None = None,
        budget: float | None = None,
    ):
        self._fetchers = dict(fetchers)
        self._fallback = fallback
        self._analyzer = analyzer or IntentAnalyzer()
        self._budget = budget if budget is not None else settings.ORCHESTRATOR_BUDGET

    async def fetch_categorized(
        self, analysis: IntentAnalysis, budget: float | None = None
    ) -> dict[Category, SourceResult]:
        """Fetch every needed category concurrently within ``budget`` seconds.

        Returns the results that completed in time; failed, empty and
        cancelled categories are simply absent.
        """
        deadline = self._budget if budget is None else budget
        tasks: dict[asyncio.Task, Category] = {}
        for category in analysis.needed_categories:
            fetcher = self._fetchers.get(category)
            if fetcher is None:
                continue
            task = asyncio.create_task(
                self._run_fetcher(category, fetcher, analysis), name=f"fetch:{category}"
            )
            tasks[task] = category

        if not tasks:
            return {}

        logger.info(
            "orchestrator.fanout_start",
            categories=[c.value for c in tasks.values()],
            budget_seconds=deadline,
        )
        start_time = time.perf_counter()
        try:
            done, pending = await asyncio.wait(tasks, timeout=deadline)
        finally:
            # Also runs when the caller is cancelled mid-wait; no fetch outlives this call.
            unfinished = [t for t in tasks if not t.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        for task in pending:
            category = tasks[task]
            orchestrator_deadline_exceeded_total.labels(category=category).inc()
            logger.warning(
                "orchestrator.deadline_exceeded", category=category, budget_seconds=deadline
            )

        results: dict[Category, SourceResult] = {}
        for task in done:
            result = task.result()
            if result is not None:
                results[tasks[task]] = result

        duration = time.perf_counter() - start_time
        orchestrator_fanout_duration_seconds.observe(duration)
        logger.info(
            "orchestrator.fanout_done",
            completed=[c.value for c in results],
            dropped=[tasks[t].value for t in pending],
            duration_ms=round(duration * 1000, 1),
        )
        # Keep category order stable for callers that render results.
        return {c: results[c] for c in Category if c in results}

    async def gather_knowledge(self, query: str, budget: float | None = None) -> KnowledgeResult:
        """Analyze ``query``, fan out, and fall back to web search if nothing answered."""
        analysis = self._analyzer.analyze(query)
        results = await self.fetch_categorized(analysis, budget)

        web_search: FallbackOutcome | None = None
        if not results and self._should_fall_back(analysis):
            web_search = await self._run_fallback(analysis.search_query)

        collected = list(results.values())
        if web_search is not None and web_search.result is not None:
            collected.append(web_search.result)
        knowledge = KnowledgeResult(
            query=query,
            analysis=analysis,
            results=results,
            web_search=web_search,
            aggregated=aggregate(collected),
        )
        logger.info(
            "orchestrator.complete",
            primary_intent=analysis.primary_intent,
            sources_used=knowledge.sources_used,
            best_source=knowledge.best_answer.source if knowledge.best_answer else None,
            fallback_used=web_search is not None,
        )
        return knowledge

    def _should_fall_back(self, analysis: IntentAnalysis) -> bool:
        if self._fallback is None:
            return False
        return bool(analysis.categories & _FALLBACK_CATEGORIES) or bool(analysis.search_terms)

    async def _run_fallback(self, search_query: str) -> FallbackOutcome:
        try:
            return await self._fallback.find_best_answer(search_query)
        except Exception:
            logger.exception("orchestrator.fallback_error", query_preview=search_query[:80])
            return FallbackOutcome(found=False, fallback_used=True, message="No results found")

    async def _run_fetcher(
        self, category: Category, fetcher: CategoryFetcher, analysis: IntentAnalysis
    ) -> SourceResult | None:
        try:
            return await fetcher(analysis)
        except Exception:
            logger.exception(f"orchestrator.{category}_error", query_preview=analysis.query[:80])
            return None


# ---------------------------------------------------------------------------
# Default category wiring
# ---------------------------------------------------------------------------


def build_category_fetchers(cache: CacheLayer) -> dict[Category, CategoryFetcher]:
    """Map each category to its tool call. Web search has no fetcher; the fallback serves it."""

    async def fetch_time(a: IntentAnalysis) -> SourceResult | None:
        return await get_world_time(cache, a.time_location or "UTC")

    async def fetch_date(_a: IntentAnalysis) -> SourceResult | None:
        return get_date_info()

    async def fetch_weather(a: IntentAnalysis) -> SourceResult | None:
        return await get_weather(cache, a.weather_location or settings.DEFAULT_WEATHER_LOCATION)

    async def fetch_air_quality(a: IntentAnalysis) -> SourceResult | None:
        return await get_air_quality(
            cache, a.weather_location or settings.DEFAULT_WEATHER_LOCATION
        )

    async def fetch_currency(a: IntentAnalysis) -> SourceResult | None:
        if a.currency_amount is not None and a.currency_from and a.currency_to:
            return await convert_currency(cache, a.currency_amount, a.currency_from, a.currency_to)
        return await get_exchange_rates(cache, a.currency_from)

    async def fetch_crypto(a: IntentAnalysis) -> SourceResult | None:
        if a.crypto_name is None or a.crypto_name == "top":
            return await get_top_cryptos(cache)
        return await get_crypto_price(cache, a.crypto_name)

    async def fetch_holidays(a: IntentAnalysis) -> SourceResult | None:
        country = a.holiday_country
        if country and len(country) != 2:
            info = await get_country_info(cache, country)
            country = info.content.get("code") if info else None
            if not country:
                return None
        return await get_holidays(cache, country, a.holiday_year)

    async def fetch_news(a: IntentAnalysis) -> SourceResult | None:
        if a.hacker_news_kind:
            return await get_hacker_news(cache, a.hacker_news_kind)
        return await get_news(cache, a.news_topic)

    async def fetch_country(a: IntentAnalysis) -> SourceResult | None:
        name = a.country_name or (a.search_terms[0] if a.search_terms else None)
        return await get_country_info(cache, name) if name else None

    async def fetch_dictionary(a: IntentAnalysis) -> SourceResult | None:
        term = a.dictionary_term or (a.search_terms[0] if a.search_terms else None)
        if not term:
            return None
        return await cache.get_or_fetch(
            cache_key(CacheKeys.DICTIONARY, term),
            settings.CACHE_TTL_SEARCH,
            lambda: lookup_word(term),
        )

    async def fetch_math(a: IntentAnalysis) -> SourceResult | None:
        return evaluate_expression(a.math_expression) if a.math_expression else None

    async def fetch_quote(_a: IntentAnalysis) -> SourceResult | None:
        return await get_quote()

    async def fetch_joke(_a: IntentAnalysis) -> SourceResult | None:
        return await get_joke()

    async def fetch_trivia(_a: IntentAnalysis) -> SourceResult | None:
        return await get_trivia_question()

    async def fetch_encyclopedia(a: IntentAnalysis) -> SourceResult | None:
        term = a.encyclopedia_term or a.search_query
        return await cache.get_or_fetch(
            cache_key(CacheKeys.ENCYCLOPEDIA, term),
            settings.CACHE_TTL_SEARCH,
            lambda: search_wikipedia(term),
        )

    return {
        Category.TIME: fetch_time,
        Category.DATE: fetch_date,
        Category.HOLIDAYS: fetch_holidays,
        Category.WEATHER: fetch_weather,
        Category.AIR_QUALITY: fetch_air_quality,
        Category.CURRENCY: fetch_currency,
        Category.CRYPTO: fetch_crypto,
        Category.NEWS: fetch_news,
        Category.COUNTRY: fetch_country,
        Category.DICTIONARY: fetch_dictionary,
        Category.MATH: fetch_math,
        Category.QUOTE: fetch_quote,
        Category.JOKE: fetch_joke,
        Category.TRIVIA: fetch_trivia,
        Category.ENCYCLOPEDIA: fetch_encyclopedia,
    }
