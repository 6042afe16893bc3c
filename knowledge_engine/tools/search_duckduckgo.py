"""DuckDuckGo Instant Answer source.

Returns at most one SourceResult, picking the most direct field the API
filled in: Answer, then Abstract, then Definition, then RelatedTopics.
Never raises.
"""

import structlog

from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult

logger = structlog.get_logger(__name__)

_DDG_URL = "https://api.duckduckgo.com/"
_MAX_RELATED = 5

INSTANT_ANSWER_CONFIDENCE = 0.95
ABSTRACT_CONFIDENCE = 0.85
DEFINITION_CONFIDENCE = 0.8
RELATED_CONFIDENCE = 0.6


def _related_topics(raw: list) -> list[dict]:
    topics = []
    for topic in raw:
        # Grouped topics ({"Name", "Topics": [...]}) carry no Text of their own.
        if isinstance(topic, dict) and topic.get("Text"):
            topics.append({"text": topic["Text"], "url": topic.get("FirstURL")})
        if len(topics) >= _MAX_RELATED:
            break
    return topics


def normalize_duckduckgo(data: dict) -> SourceResult | None:
    if data.get("Answer"):
        return SourceResult(
            type=ResultType.INSTANT_ANSWER,
            content=str(data["Answer"]),
            confidence=INSTANT_ANSWER_CONFIDENCE,
            source="DuckDuckGo Instant Answer",
            details={"answer_type": data.get("AnswerType")},
        )

    if data.get("Abstract"):
        return SourceResult(
            type=ResultType.ABSTRACT,
            content=data["Abstract"],
            confidence=ABSTRACT_CONFIDENCE,
            source=data.get("AbstractSource") or "DuckDuckGo",
            title=data.get("Heading") or None,
            url=data.get("AbstractURL") or None,
            image=data.get("Image") or None,
        )

    if data.get("Definition"):
        return SourceResult(
            type=ResultType.DEFINITION,
            content=data["Definition"],
            confidence=DEFINITION_CONFIDENCE,
            source=data.get("DefinitionSource") or "DuckDuckGo",
            url=data.get("DefinitionURL") or None,
        )

    topics = _related_topics(data.get("RelatedTopics") or [])
    if topics:
        return SourceResult(
            type=ResultType.RELATED,
            content=topics,
            confidence=RELATED_CONFIDENCE,
            source="DuckDuckGo Related",
        )
    return None


async def search_duckduckgo(query: str) -> SourceResult | None:
    data = await fetch_json(
        "duckduckgo",
        _DDG_URL,
        params={"q": query, "format": "json", "no_html": 1, "skip_disambig": 1},
    )
    if not isinstance(data, dict):
        return None
    result = normalize_duckduckgo(data)
    logger.debug(
        "search_duckduckgo.done",
        query_preview=query[:80],
        result_type=result.type if result else None,
    )
    return result
