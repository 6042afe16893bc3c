"""Unit tests for the caller-facing knowledge service wiring."""

from unittest.mock import AsyncMock, patch

import pytest

from knowledge_engine.core.cache import CacheLayer
from knowledge_engine.models.schemas import Category
from knowledge_engine.services.knowledge import build_knowledge_service


@pytest.mark.asyncio
async def test_service_answers_local_categories_without_network() -> None:
    service = build_knowledge_service(CacheLayer(maxsize=100))
    await service.start()
    try:
        knowledge = await service.query("what is 7 times 6?")
    finally:
        await service.aclose()

    assert knowledge.results[Category.MATH].content["formatted"] == "42"
    assert knowledge.web_search is None
    assert knowledge.sources_used == ["Calculator"]


@pytest.mark.asyncio
async def test_service_shares_one_cache_across_queries() -> None:
    """Two queries for the same rates hit the provider once."""
    payload = {"base": "USD", "date": "2026-10-17", "rates": {"USD": 1.0, "EUR": 0.5}}
    fetch = AsyncMock(return_value=payload)
    service = build_knowledge_service(CacheLayer(maxsize=100))

    with patch("knowledge_engine.tools.finance.fetch_json", new=fetch):
        first = await service.query("convert 10 usd to eur")
        second = await service.query("convert 4 usd to eur")

    assert first.results[Category.CURRENCY].content["result"] == 5.0
    assert second.results[Category.CURRENCY].content["result"] == 2.0
    fetch.assert_awaited_once()
    assert service.cache_stats().hits >= 1

    await service.clear_cache()
    assert service.cache.keys() == []


@pytest.mark.asyncio
async def test_service_fallback_only_path() -> None:
    service = build_knowledge_service(CacheLayer(maxsize=100))
    service.fallback.find_best_answer = AsyncMock()

    await service.find_best_answer("who discovered penicillin")

    service.fallback.find_best_answer.assert_awaited_once_with("who discovered penicillin")
