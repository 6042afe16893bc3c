"""Pydantic models shared by the analyzer, orchestrator, fallback chain and tools.

Centralised here so that every layer speaks the same types without circular
imports. Tools return ``SourceResult | None``; absence is never an exception.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Intent analysis
# ---------------------------------------------------------------------------


class Category(StrEnum):
    """Information needs a query can flag. Order here is fan-out order."""

    TIME = "time"
    DATE = "date"
    HOLIDAYS = "holidays"
    WEATHER = "weather"
    AIR_QUALITY = "air_quality"
    CURRENCY = "currency"
    CRYPTO = "crypto"
    NEWS = "news"
    COUNTRY = "country"
    DICTIONARY = "dictionary"
    MATH = "math"
    QUOTE = "quote"
    JOKE = "joke"
    TRIVIA = "trivia"
    ENCYCLOPEDIA = "encyclopedia"
    WEB_SEARCH = "web_search"


class Intent(StrEnum):
    TIME = "time"
    DATE = "date"
    HOLIDAYS = "holidays"
    WEATHER = "weather"
    AIR_QUALITY = "air_quality"
    CURRENCY_CONVERT = "currency_convert"
    CURRENCY = "currency"
    CRYPTO = "crypto"
    NEWS = "news"
    COUNTRY = "country"
    DICTIONARY = "dictionary"
    MATH = "math"
    QUOTE = "quote"
    JOKE = "joke"
    TRIVIA = "trivia"
    KNOWLEDGE = "knowledge"
    WEB_SEARCH = "web_search"


class IntentAnalysis(BaseModel):
    """Classified intent plus extracted parameters for one query.

    ``primary_intent`` is the first rule group that matched; it is only None
    for trivial queries (three characters or fewer) that match nothing.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    categories: frozenset[Category] = frozenset()

    time_location: str | None = None
    holiday_country: str | None = None
    holiday_year: int | None = None
    weather_location: str | None = None
    currency_amount: float | None = None
    currency_from: str | None = None
    currency_to: str | None = None
    crypto_name: str | None = None
    news_topic: str | None = None
    hacker_news_kind: str | None = None
    country_name: str | None = None
    dictionary_term: str | None = None
    encyclopedia_term: str | None = None
    math_expression: str | None = None
    search_terms: tuple[str, ...] = ()

    primary_intent: Intent | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    def needs(self, category: Category) -> bool:
        return category in self.categories

    @property
    def needed_categories(self) -> list[Category]:
        return [c for c in Category if c in self.categories]

    @property
    def search_query(self) -> str:
        """Text handed to web search: first extracted term, else the raw query."""
        if self.search_terms:
            return self.search_terms[0]
        return self.query.replace("?", "").strip()


# ---------------------------------------------------------------------------
# Source results
# ---------------------------------------------------------------------------


class ResultType(StrEnum):
    INSTANT_ANSWER = "instant_answer"
    ABSTRACT = "abstract"
    DEFINITION = "definition"
    DICTIONARY = "dictionary"
    ENCYCLOPEDIA = "encyclopedia"
    TECH_QA = "tech_qa"
    RELATED = "related"
    SEARCH_RESULTS = "search_results"
    LIVE_DATA = "live_data"


class SourceResult(BaseModel):
    """Normalized output of one source call.

    ``content`` depends on ``type``:
      - instant_answer / abstract / definition / encyclopedia / tech_qa: answer text
      - dictionary: list of meanings ``{"part_of_speech", "definitions": [...]}``
      - related: list of ``{"text", "url"}`` topics
      - search_results: list of ``{"title", "snippet", ...}`` hits
      - live_data: provider-specific dict (weather report, rates, ...)
    """

    model_config = ConfigDict(frozen=True)

    type: ResultType
    content: Any
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: str
    url: str | None = None
    title: str | None = None
    image: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class AggregatedResult(BaseModel):
    all_results: list[SourceResult] = Field(default_factory=list)
    best_answer: SourceResult | None = None
    sources_used: list[str] = Field(default_factory=list)


class FallbackOutcome(BaseModel):
    """Terminal outcome of the fallback chain. Not found is a value, not an error."""

    found: bool
    result: SourceResult | None = None
    partial_results: list[SourceResult] = Field(default_factory=list)
    all_results: list[SourceResult] = Field(default_factory=list)
    fallback_used: bool = False
    message: str | None = None


class KnowledgeResult(BaseModel):
    """Everything gathered for one query: categorized results plus any web fallback.

    ``aggregated`` ranks every collected result (categorized ones and the
    fallback answer) so callers can lead with ``best_answer``.
    """

    query: str
    analysis: IntentAnalysis
    results: dict[Category, SourceResult] = Field(default_factory=dict)
    web_search: FallbackOutcome | None = None
    aggregated: AggregatedResult = Field(default_factory=AggregatedResult)

    @property
    def best_answer(self) -> SourceResult | None:
        return self.aggregated.best_answer

    @property
    def sources_used(self) -> list[str]:
        sources = [r.source for r in self.results.values()]
        if self.web_search is not None and self.web_search.result is not None:
            sources.append(self.web_search.result.source)
        return sources

    @property
    def has_answer(self) -> bool:
        return bool(self.results) or bool(self.web_search and self.web_search.found)
