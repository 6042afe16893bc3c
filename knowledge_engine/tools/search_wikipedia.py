"""Wikipedia sources.

``search_wikipedia`` resolves the best-matching article title via opensearch
and returns its REST summary. ``search_wikipedia_pages`` returns the top
full-text search hits with snippets. Both never raise.
"""

import re
from urllib.parse import quote

import structlog

from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult

logger = structlog.get_logger(__name__)

_API_URL = "https://en.wikipedia.org/w/api.php"
_SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary/{title}"
_MAX_HITS = 3
_HTML_TAG = re.compile(r"<[^>]*>")

SUMMARY_CONFIDENCE = 0.9
SEARCH_CONFIDENCE = 0.7


def strip_html(text: str) -> str:
    return _HTML_TAG.sub("", text)


async def search_wikipedia(query: str) -> SourceResult | None:
    """Summary of the article opensearch ranks first for ``query``."""
    titles = await fetch_json(
        "wikipedia",
        _API_URL,
        params={"action": "opensearch", "search": query, "limit": _MAX_HITS, "format": "json"},
    )
    # opensearch answers [query, [titles], [descriptions], [urls]]
    if not isinstance(titles, list) or len(titles) < 2 or not titles[1]:
        return None
    best_match = titles[1][0]

    summary = await fetch_json("wikipedia", _SUMMARY_URL.format(title=quote(best_match, safe="")))
    if not isinstance(summary, dict) or not summary.get("extract"):
        logger.info("search_wikipedia.no_extract", title=best_match)
        return None

    return SourceResult(
        type=ResultType.ENCYCLOPEDIA,
        content=summary["extract"],
        confidence=SUMMARY_CONFIDENCE,
        source="Wikipedia",
        title=summary.get("title") or best_match,
        url=((summary.get("content_urls") or {}).get("desktop") or {}).get("page"),
        image=(summary.get("thumbnail") or {}).get("source"),
        details={"description": summary.get("description")},
    )


async def search_wikipedia_pages(query: str) -> SourceResult | None:
    """Top full-text hits for ``query`` as a search_results list."""
    data = await fetch_json(
        "wikipedia",
        _API_URL,
        params={
            "action": "query",
            "list": "search",
            "srsearch": query,
            "format": "json",
            "srlimit": _MAX_HITS,
            "srprop": "snippet",
        },
    )
    hits = ((data or {}).get("query") or {}).get("search") if isinstance(data, dict) else None
    if not hits:
        return None

    pages = [
        {
            "title": hit.get("title"),
            "snippet": strip_html(hit.get("snippet", "")),
            "page_id": hit.get("pageid"),
        }
        for hit in hits
    ]
    return SourceResult(
        type=ResultType.SEARCH_RESULTS,
        content=pages,
        confidence=SEARCH_CONFIDENCE,
        source="Wikipedia Search",
    )
