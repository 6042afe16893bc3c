"""Unit tests for the time-bounded categorized fan-out."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from knowledge_engine.agents.intent import analyze_query
from knowledge_engine.agents.orchestrator import SourceOrchestrator, build_category_fetchers
from knowledge_engine.core.cache import CacheLayer
from knowledge_engine.models.schemas import (
    Category,
    FallbackOutcome,
    IntentAnalysis,
    ResultType,
    SourceResult,
)


def _live(source: str, confidence: float = 0.95) -> SourceResult:
    return SourceResult(
        type=ResultType.LIVE_DATA, content={}, confidence=confidence, source=source
    )


def _analysis(*categories: Category) -> IntentAnalysis:
    return IntentAnalysis(query="test query", categories=frozenset(categories))


@pytest.mark.asyncio
async def test_raising_fetcher_is_isolated() -> None:
    """One fetcher raising does not affect its siblings."""
    orchestrator = SourceOrchestrator(
        {
            Category.TIME: AsyncMock(return_value=_live("clock")),
            Category.WEATHER: AsyncMock(side_effect=RuntimeError("provider down")),
            Category.CRYPTO: AsyncMock(return_value=_live("coins")),
        }
    )

    results = await orchestrator.fetch_categorized(
        _analysis(Category.TIME, Category.WEATHER, Category.CRYPTO)
    )

    assert set(results) == {Category.TIME, Category.CRYPTO}
    assert results[Category.TIME].source == "clock"


@pytest.mark.asyncio
async def test_hung_fetcher_is_cancelled_at_budget() -> None:
    """The fan-out returns near the budget with the hung category absent."""
    cancelled = asyncio.Event()

    async def hang(_analysis: IntentAnalysis) -> SourceResult:
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        raise AssertionError("unreachable")

    orchestrator = SourceOrchestrator(
        {
            Category.TIME: AsyncMock(return_value=_live("clock")),
            Category.WEATHER: hang,
        }
    )

    start = time.perf_counter()
    results = await orchestrator.fetch_categorized(
        _analysis(Category.TIME, Category.WEATHER), budget=0.1
    )
    elapsed = time.perf_counter() - start

    assert set(results) == {Category.TIME}
    assert elapsed < 1.0
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_only_flagged_categories_with_fetchers_run() -> None:
    weather = AsyncMock(return_value=_live("sky"))
    joke = AsyncMock(return_value=_live("jokes"))
    orchestrator = SourceOrchestrator({Category.WEATHER: weather, Category.JOKE: joke})

    results = await orchestrator.fetch_categorized(
        _analysis(Category.WEATHER, Category.WEB_SEARCH)
    )

    assert list(results) == [Category.WEATHER]
    joke.assert_not_awaited()


@pytest.mark.asyncio
async def test_empty_fanout_triggers_fallback() -> None:
    fallback = MagicMock()
    fallback.find_best_answer = AsyncMock(
        return_value=FallbackOutcome(found=True, result=_live("DuckDuckGo"))
    )
    orchestrator = SourceOrchestrator({}, fallback=fallback)

    knowledge = await orchestrator.gather_knowledge("best pizza dough hydration")

    fallback.find_best_answer.assert_awaited_once_with("best pizza dough hydration")
    assert knowledge.web_search.found
    assert knowledge.sources_used == ["DuckDuckGo"]
    assert knowledge.has_answer


@pytest.mark.asyncio
async def test_categorized_results_skip_fallback() -> None:
    fallback = MagicMock()
    fallback.find_best_answer = AsyncMock()
    orchestrator = SourceOrchestrator(
        {Category.MATH: AsyncMock(return_value=_live("Calculator"))}, fallback=fallback
    )

    knowledge = await orchestrator.gather_knowledge("2 + 2")

    assert list(knowledge.results) == [Category.MATH]
    assert knowledge.web_search is None
    fallback.find_best_answer.assert_not_awaited()


@pytest.mark.asyncio
async def test_raising_fallback_is_not_found() -> None:
    fallback = MagicMock()
    fallback.find_best_answer = AsyncMock(side_effect=RuntimeError("boom"))
    orchestrator = SourceOrchestrator({}, fallback=fallback)

    knowledge = await orchestrator.gather_knowledge("Where do penguins live?")

    assert knowledge.web_search.found is False
    assert not knowledge.has_answer


@pytest.mark.asyncio
async def test_default_fetchers_evaluate_math_locally() -> None:
    """Math and date need no network, so the default wiring answers them directly."""
    orchestrator = SourceOrchestrator(build_category_fetchers(CacheLayer(maxsize=10)))

    results = await orchestrator.fetch_categorized(analyze_query("(3*4)/2"))

    assert results[Category.MATH].content["formatted"] == "6"


def test_default_fetchers_cover_every_category_but_web_search() -> None:
    fetchers = build_category_fetchers(CacheLayer(maxsize=10))

    assert set(fetchers) == set(Category) - {Category.WEB_SEARCH}


@pytest.mark.asyncio
async def test_best_answer_ranks_categorized_results() -> None:
    analyzer = MagicMock()
    analyzer.analyze.return_value = _analysis(Category.TIME, Category.WEATHER)
    orchestrator = SourceOrchestrator(
        {
            Category.TIME: AsyncMock(return_value=_live("clock", confidence=0.7)),
            Category.WEATHER: AsyncMock(return_value=_live("sky", confidence=0.9)),
        },
        analyzer=analyzer,
    )

    knowledge = await orchestrator.gather_knowledge("time and weather in Paris")

    assert knowledge.best_answer.source == "sky"
    assert knowledge.aggregated.sources_used == ["sky", "clock"]
    assert len(knowledge.aggregated.all_results) == 2


@pytest.mark.asyncio
async def test_best_answer_comes_from_fallback_when_nothing_categorized() -> None:
    fallback = MagicMock()
    fallback.find_best_answer = AsyncMock(
        return_value=FallbackOutcome(found=True, result=_live("DuckDuckGo", confidence=0.8))
    )
    orchestrator = SourceOrchestrator({}, fallback=fallback)

    knowledge = await orchestrator.gather_knowledge("best pizza dough hydration")

    assert knowledge.best_answer.source == "DuckDuckGo"


@pytest.mark.asyncio
async def test_cancelled_caller_leaves_no_fetch_running() -> None:
    """Cancelling the caller mid-fan-out also cancels every fetch it started."""
    finished: list[str] = []

    async def slow(_analysis: IntentAnalysis) -> SourceResult:
        await asyncio.sleep(0.3)
        finished.append("weather")
        return _live("sky")

    orchestrator = SourceOrchestrator({Category.WEATHER: slow})

    with pytest.raises(TimeoutError):
        async with asyncio.timeout(0.05):
            await orchestrator.fetch_categorized(_analysis(Category.WEATHER), budget=5)
    await asyncio.sleep(0.4)

    assert finished == []


@pytest.mark.asyncio
async def test_zero_budget_is_honoured() -> None:
    async def slow(_analysis: IntentAnalysis) -> SourceResult:
        await asyncio.sleep(1)
        return _live("sky")

    orchestrator = SourceOrchestrator({Category.WEATHER: slow}, budget=0.0)

    start = time.perf_counter()
    results = await orchestrator.fetch_categorized(_analysis(Category.WEATHER))

    assert results == {}
    assert time.perf_counter() - start < 0.5


@pytest.mark.asyncio
async def test_zero_call_budget_overrides_instance_budget() -> None:
    async def slow(_analysis: IntentAnalysis) -> SourceResult:
        await asyncio.sleep(1)
        return _live("sky")

    orchestrator = SourceOrchestrator({Category.WEATHER: slow}, budget=5.0)

    start = time.perf_counter()
    results = await orchestrator.fetch_categorized(_analysis(Category.WEATHER), budget=0.0)

    assert results == {}
    assert time.perf_counter() - start < 0.5


@pytest.mark.asyncio
async def test_default_encyclopedia_and_dictionary_fetchers_use_cache() -> None:
    cache = CacheLayer(maxsize=10)
    fetchers = build_category_fetchers(cache)
    article = SourceResult(
        type=ResultType.ENCYCLOPEDIA, content="A star.", confidence=0.9, source="Wikipedia"
    )
    entry = SourceResult(
        type=ResultType.DICTIONARY, content=[], confidence=0.9, source="Dictionary"
    )
    analysis = IntentAnalysis(
        query="sun",
        categories=frozenset({Category.ENCYCLOPEDIA, Category.DICTIONARY}),
        encyclopedia_term="Sun",
        dictionary_term="sun",
    )

    with (
        patch(
            "knowledge_engine.agents.orchestrator.search_wikipedia",
            AsyncMock(return_value=article),
        ) as wiki,
        patch(
            "knowledge_engine.agents.orchestrator.lookup_word", AsyncMock(return_value=entry)
        ) as word,
    ):
        for _ in range(2):
            assert await fetchers[Category.ENCYCLOPEDIA](analysis) == article
            assert await fetchers[Category.DICTIONARY](analysis) == entry

    wiki.assert_awaited_once_with("Sun")
    word.assert_awaited_once_with("sun")
    assert cache.stats().hits == 2


@pytest.mark.asyncio
async def test_holidays_fetcher_resolves_country_name_to_code() -> None:
    cache = CacheLayer(maxsize=10)
    fetchers = build_category_fetchers(cache)
    country = SourceResult(
        type=ResultType.LIVE_DATA, content={"code": "BR"}, confidence=0.9, source="REST Countries"
    )
    analysis = IntentAnalysis(
        query="holidays in brazil 2026",
        categories=frozenset({Category.HOLIDAYS}),
        holiday_country="brazil",
        holiday_year=2026,
    )

    with (
        patch(
            "knowledge_engine.agents.orchestrator.get_country_info",
            AsyncMock(return_value=country),
        ) as info,
        patch(
            "knowledge_engine.agents.orchestrator.get_holidays",
            AsyncMock(return_value=_live("Nager.Date")),
        ) as holidays,
    ):
        result = await fetchers[Category.HOLIDAYS](analysis)

    assert result.source == "Nager.Date"
    info.assert_awaited_once_with(cache, "brazil")
    holidays.assert_awaited_once_with(cache, "BR", 2026)


@pytest.mark.asyncio
async def test_holidays_fetcher_gives_up_on_unknown_country() -> None:
    fetchers = build_category_fetchers(CacheLayer(maxsize=10))
    analysis = IntentAnalysis(
        query="holidays in atlantis",
        categories=frozenset({Category.HOLIDAYS}),
        holiday_country="atlantis",
    )

    with (
        patch(
            "knowledge_engine.agents.orchestrator.get_country_info",
            AsyncMock(return_value=None),
        ),
        patch("knowledge_engine.agents.orchestrator.get_holidays", AsyncMock()) as holidays,
    ):
        assert await fetchers[Category.HOLIDAYS](analysis) is None

    holidays.assert_not_awaited()


@pytest.mark.asyncio
async def test_news_fetcher_routes_hacker_news_and_topics() -> None:
    cache = CacheLayer(maxsize=10)
    fetchers = build_category_fetchers(cache)
    hn = IntentAnalysis(
        query="hacker news best",
        categories=frozenset({Category.NEWS}),
        hacker_news_kind="best",
    )
    topical = IntentAnalysis(
        query="science news", categories=frozenset({Category.NEWS}), news_topic="science"
    )

    with (
        patch(
            "knowledge_engine.agents.orchestrator.get_hacker_news",
            AsyncMock(return_value=_live("Hacker News")),
        ) as hacker_news,
        patch(
            "knowledge_engine.agents.orchestrator.get_news",
            AsyncMock(return_value=_live("NYT > Science")),
        ) as news,
    ):
        assert (await fetchers[Category.NEWS](hn)).source == "Hacker News"
        assert (await fetchers[Category.NEWS](topical)).source == "NYT > Science"

    hacker_news.assert_awaited_once_with(cache, "best")
    news.assert_awaited_once_with(cache, "science")
