"""Knowledge service: the caller-facing entry point.

Owns the process-wide cache and wires the analyzer, fallback chain and
orchestrator around it. Callers that embed the engine (a chat backend, a CLI)
hold one instance for the life of the process:

    service = build_knowledge_service()
    await service.start()
    knowledge = await service.query("weather in paris and time in tokyo")
    ...
    await service.aclose()
"""

import structlog

from knowledge_engine.agents.intent import IntentAnalyzer
from knowledge_engine.agents.orchestrator import SourceOrchestrator, build_category_fetchers
from knowledge_engine.agents.search_fallback import FallbackChainExecutor, build_fallback_chain
from knowledge_engine.core.cache import CacheLayer, CacheStats
from knowledge_engine.core.config import settings
from knowledge_engine.models.schemas import FallbackOutcome, IntentAnalysis, KnowledgeResult

logger = structlog.get_logger(__name__)


class KnowledgeService:
    def __init__(
        self,
        cache: CacheLayer,
        analyzer: IntentAnalyzer,
        fallback: FallbackChainExecutor,
        orchestrator: SourceOrchestrator,
    ):
        self.cache = cache
        self.analyzer = analyzer
        self.fallback = fallback
        self.orchestrator = orchestrator

    async def start(self) -> None:
        """Start background cache maintenance. Must be called inside a running loop."""
        self.cache.start_sweeper(settings.CACHE_SWEEP_INTERVAL)

    async def aclose(self) -> None:
        await self.cache.aclose()
        logger.info("knowledge_service.closed", cache=self.cache.stats())

    def analyze(self, text: str) -> IntentAnalysis:
        return self.analyzer.analyze(text)

    async def query(self, text: str, budget: float | None = None) -> KnowledgeResult:
        """Gather categorized knowledge for ``text`` with web fallback."""
        return await self.orchestrator.gather_knowledge(text, budget)

    async def find_best_answer(self, text: str) -> FallbackOutcome:
        """Skip categorization and run only the fallback chain."""
        return await self.fallback.find_best_answer(text)

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    async def clear_cache(self) -> None:
        await self.cache.clear()


def build_knowledge_service(cache: CacheLayer | None = None) -> KnowledgeService:
    """Build a service with the default public sources, configured from settings."""
    cache = cache or CacheLayer()
    analyzer = IntentAnalyzer()
    fallback = build_fallback_chain(cache)
    orchestrator = SourceOrchestrator(
        build_category_fetchers(cache),
        fallback=fallback,
        analyzer=analyzer,
    )
    logger.info(
        "knowledge_service.built",
        budget_seconds=settings.ORCHESTRATOR_BUDGET,
        probe_timeout_seconds=settings.FALLBACK_PROBE_TIMEOUT,
    )
    return KnowledgeService(cache, analyzer, fallback, orchestrator)
