"""Stack Overflow source via the Stack Exchange excerpts search.

Prefers the top-ranked answer; falls back to the top question. Never raises.
Whether a query is technical enough to ask is decided by the caller.
"""

import structlog

from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult
from knowledge_engine.tools.search_wikipedia import strip_html

logger = structlog.get_logger(__name__)

_EXCERPTS_URL = "https://api.stackexchange.com/2.3/search/excerpts"
_PAGE_SIZE = 3

ANSWER_CONFIDENCE = 0.85
QUESTION_CONFIDENCE = 0.7


async def search_stackexchange(query: str) -> SourceResult | None:
    data = await fetch_json(
        "stackexchange",
        _EXCERPTS_URL,
        params={
            "order": "desc",
            "sort": "relevance",
            "q": query,
            "site": "stackoverflow",
            "pagesize": _PAGE_SIZE,
        },
    )
    items = data.get("items") if isinstance(data, dict) else None
    if not items:
        return None

    answer = next((i for i in items if i.get("item_type") == "answer"), None)
    if answer is not None:
        return SourceResult(
            type=ResultType.TECH_QA,
            content=strip_html(answer.get("excerpt", "")),
            confidence=ANSWER_CONFIDENCE,
            source="Stack Overflow",
            title=answer.get("title"),
            url=f"https://stackoverflow.com/a/{answer.get('answer_id')}",
            details={"kind": "answer", "score": answer.get("score")},
        )

    question = next((i for i in items if i.get("item_type") == "question"), None)
    if question is not None:
        return SourceResult(
            type=ResultType.TECH_QA,
            content=strip_html(question.get("excerpt", "")),
            confidence=QUESTION_CONFIDENCE,
            source="Stack Overflow",
            title=question.get("title"),
            url=f"https://stackoverflow.com/q/{question.get('question_id')}",
            details={"kind": "question", "score": question.get("score")},
        )

    logger.debug("search_stackexchange.no_match", query_preview=query[:80])
    return None
