"""Unit tests for the fallback chain and result ranking."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from knowledge_engine.agents.search_fallback import (
    FallbackChainExecutor,
    KnowledgeSource,
    aggregate,
    extract_definition_term,
    looks_like_tech_query,
    rank_results,
    select_best,
)
from knowledge_engine.core.cache import CacheLayer
from knowledge_engine.models.schemas import ResultType, SourceResult


def _result(type_: ResultType, confidence: float, source: str = "test") -> SourceResult:
    return SourceResult(type=type_, content=f"{type_} answer", confidence=confidence, source=source)


def _chain(
    *,
    direct: AsyncMock | None = None,
    encyclopedia: AsyncMock | None = None,
    dictionary: AsyncMock | None = None,
    tech_qa: AsyncMock | None = None,
    extra: AsyncMock | None = None,
    probe_timeout: float = 1.0,
) -> FallbackChainExecutor:
    return FallbackChainExecutor(
        CacheLayer(maxsize=100),
        direct=KnowledgeSource("direct", direct or AsyncMock(return_value=None)),
        encyclopedia=KnowledgeSource("encyclopedia", encyclopedia or AsyncMock(return_value=None)),
        dictionary=KnowledgeSource("dictionary", dictionary or AsyncMock(return_value=None)),
        tech_qa=KnowledgeSource("tech_qa", tech_qa or AsyncMock(return_value=None)),
        extra_sources=[KnowledgeSource("extra", extra or AsyncMock(return_value=None))],
        probe_timeout=probe_timeout,
        min_confidence=0.65,
    )


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def test_higher_confidence_wins() -> None:
    related = _result(ResultType.RELATED, 0.6)
    dictionary = _result(ResultType.DICTIONARY, 0.9)

    assert select_best([related, dictionary]) is dictionary


def test_confidence_tie_breaks_by_type_priority() -> None:
    search = _result(ResultType.SEARCH_RESULTS, 0.8)
    tech = _result(ResultType.TECH_QA, 0.8)
    encyclopedia = _result(ResultType.ENCYCLOPEDIA, 0.8)

    ranked = rank_results([search, tech, encyclopedia])

    assert [r.type for r in ranked] == [
        ResultType.ENCYCLOPEDIA,
        ResultType.TECH_QA,
        ResultType.SEARCH_RESULTS,
    ]


def test_select_best_respects_floor_and_empty_input() -> None:
    assert select_best([_result(ResultType.RELATED, 0.6)], min_confidence=0.65) is None
    assert select_best([None]) is None


def test_aggregate_lists_sources_once() -> None:
    merged = aggregate(
        [
            _result(ResultType.SEARCH_RESULTS, 0.7, source="Wikipedia Search"),
            _result(ResultType.ENCYCLOPEDIA, 0.9, source="Wikipedia"),
            _result(ResultType.RELATED, 0.6, source="Wikipedia"),
        ]
    )

    assert merged.best_answer.source == "Wikipedia"
    assert merged.sources_used == ["Wikipedia", "Wikipedia Search"]


def test_query_gates() -> None:
    assert looks_like_tech_query("how to reverse a list in python")
    assert not looks_like_tech_query("capital of macedonia")
    assert extract_definition_term("What's a quokka") == "quokka"
    assert extract_definition_term("history of rome") is None


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_direct_answer_short_circuits() -> None:
    """An instant answer from step 1 ends the chain; no later source is called."""
    answer = _result(ResultType.INSTANT_ANSWER, 0.95)
    encyclopedia = AsyncMock(return_value=_result(ResultType.ENCYCLOPEDIA, 0.9))
    extra = AsyncMock(return_value=None)
    chain = _chain(direct=AsyncMock(return_value=answer), encyclopedia=encyclopedia, extra=extra)

    outcome = await chain.find_best_answer("speed of light")

    assert outcome.found
    assert outcome.result == answer
    assert outcome.fallback_used is False
    encyclopedia.assert_not_awaited()
    extra.assert_not_awaited()


@pytest.mark.asyncio
async def test_related_topics_do_not_short_circuit() -> None:
    """Step 1 only returns for instant answers and abstracts."""
    encyclopedia_hit = _result(ResultType.ENCYCLOPEDIA, 0.9, source="Wikipedia")
    chain = _chain(
        direct=AsyncMock(return_value=_result(ResultType.RELATED, 0.6)),
        encyclopedia=AsyncMock(return_value=encyclopedia_hit),
    )

    outcome = await chain.find_best_answer("mercury")

    assert outcome.found
    assert outcome.result == encyclopedia_hit
    assert outcome.fallback_used is True


@pytest.mark.asyncio
async def test_dictionary_step_uses_extracted_term() -> None:
    dictionary = AsyncMock(return_value=_result(ResultType.DICTIONARY, 0.95))
    chain = _chain(dictionary=dictionary)

    outcome = await chain.find_best_answer("meaning of petrichor")

    assert outcome.found
    assert outcome.result.type == ResultType.DICTIONARY
    dictionary.assert_awaited_once_with("petrichor")


@pytest.mark.asyncio
async def test_tech_step_only_for_tech_queries() -> None:
    tech_qa = AsyncMock(return_value=_result(ResultType.TECH_QA, 0.85))

    outcome = await _chain(tech_qa=tech_qa).find_best_answer("fix npm install error")
    assert outcome.result.type == ResultType.TECH_QA

    tech_qa.reset_mock()
    await _chain(tech_qa=tech_qa).find_best_answer("tallest mountain in africa")
    tech_qa.assert_not_awaited()


@pytest.mark.asyncio
async def test_full_search_ranks_remaining_sources() -> None:
    """Step 5 probes only sources not yet asked and merges earlier results."""
    direct = AsyncMock(return_value=_result(ResultType.RELATED, 0.6))
    extra = AsyncMock(return_value=_result(ResultType.SEARCH_RESULTS, 0.7, source="extra"))
    chain = _chain(direct=direct, extra=extra)

    outcome = await chain.find_best_answer("obscure topic")

    assert outcome.found
    assert outcome.result.source == "extra"
    assert [r.type for r in outcome.all_results] == [
        ResultType.SEARCH_RESULTS,
        ResultType.RELATED,
    ]
    direct.assert_awaited_once()
    extra.assert_awaited_once()


@pytest.mark.asyncio
async def test_low_confidence_results_are_partial() -> None:
    chain = _chain(direct=AsyncMock(return_value=_result(ResultType.RELATED, 0.6)))

    outcome = await chain.find_best_answer("obscure topic")

    assert outcome.found is False
    assert len(outcome.partial_results) == 1
    assert outcome.message.startswith("Couldn't find a definitive answer")


@pytest.mark.asyncio
async def test_nothing_found() -> None:
    outcome = await _chain().find_best_answer("zzqx")

    assert outcome.found is False
    assert outcome.partial_results == []
    assert outcome.message == "No results found"


@pytest.mark.asyncio
async def test_raising_and_hung_probes_become_none() -> None:
    """A failing probe and a probe past its timeout only cost themselves."""

    async def hang(_query: str) -> SourceResult:
        await asyncio.sleep(10)
        raise AssertionError("unreachable")

    extra_hit = _result(ResultType.SEARCH_RESULTS, 0.7, source="extra")
    chain = _chain(
        direct=AsyncMock(side_effect=RuntimeError("provider down")),
        encyclopedia=hang,
        extra=AsyncMock(return_value=extra_hit),
        probe_timeout=0.05,
    )

    outcome = await chain.find_best_answer("anything")

    assert outcome.found
    assert outcome.result == extra_hit


@pytest.mark.asyncio
async def test_probe_results_are_cached() -> None:
    answer = _result(ResultType.INSTANT_ANSWER, 0.95)
    direct = AsyncMock(return_value=answer)
    chain = _chain(direct=direct)

    await chain.find_best_answer("Speed of Light")
    outcome = await chain.find_best_answer("speed of  light")

    assert outcome.result == answer
    direct.assert_awaited_once()


def test_zero_timeout_and_floor_are_kept() -> None:
    chain = FallbackChainExecutor(
        CacheLayer(maxsize=10),
        direct=KnowledgeSource("direct", AsyncMock(return_value=None)),
        encyclopedia=KnowledgeSource("encyclopedia", AsyncMock(return_value=None)),
        dictionary=KnowledgeSource("dictionary", AsyncMock(return_value=None)),
        tech_qa=KnowledgeSource("tech_qa", AsyncMock(return_value=None)),
        probe_timeout=0.0,
        min_confidence=0.0,
    )

    assert chain.probe_timeout == 0.0
    assert chain.min_confidence == 0.0
