"""News fetchers.

Section headlines come from New York Times RSS feeds, converted to JSON by
rss2json.com; Hacker News stories from its public Firebase API. Both return
``SourceResult | None`` and never raise.
"""

import asyncio
from datetime import UTC, datetime

import structlog

from knowledge_engine.core.cache import CacheLayer, cache_key
from knowledge_engine.core.config import CacheKeys, settings
from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult
from knowledge_engine.tools.search_wikipedia import strip_html

logger = structlog.get_logger(__name__)

_RSS2JSON_URL = "https://api.rss2json.com/v1/api.json"
_NYT_FEED = "https://rss.nytimes.com/services/xml/rss/nyt/{section}.xml"
_HN_LIST_URL = "https://hacker-news.firebaseio.com/v0/{endpoint}.json"
_HN_ITEM_URL = "https://hacker-news.firebaseio.com/v0/item/{item_id}.json"
_CONFIDENCE = 0.9
_MAX_HEADLINES = 7
_MAX_DESCRIPTION = 250
_MAX_STORIES = 5
_STORY_TIMEOUT = 3.0

NEWS_TOPICS: dict[str, str] = {
    "technology": "Technology",
    "science": "Science",
    "business": "Business",
    "world": "World",
    "health": "Health",
    "sports": "Sports",
    "politics": "Politics",
    "arts": "Arts",
    "movies": "Movies",
    "books": "Books",
}

HACKER_NEWS_LISTS: dict[str, str] = {
    "top": "topstories",
    "new": "newstories",
    "best": "beststories",
    "ask": "askstories",
    "show": "showstories",
}


async def get_news(cache: CacheLayer, topic: str | None = None) -> SourceResult | None:
    """Latest headlines for ``topic``; unknown topics read the technology feed."""
    name = (topic or settings.DEFAULT_NEWS_TOPIC).lower()
    section = NEWS_TOPICS.get(name, NEWS_TOPICS["technology"])

    async def _fetch() -> SourceResult | None:
        data = await fetch_json(
            "rss2json", _RSS2JSON_URL, params={"rss_url": _NYT_FEED.format(section=section)}
        )
        if not isinstance(data, dict) or data.get("status") != "ok":
            return None
        items = [
            {
                "title": item.get("title"),
                "description": strip_html(item.get("description") or "")[:_MAX_DESCRIPTION],
                "link": item.get("link"),
                "published": item.get("pubDate"),
                "author": item.get("author"),
            }
            for item in (data.get("items") or [])[:_MAX_HEADLINES]
        ]
        if not items:
            return None
        feed_title = (data.get("feed") or {}).get("title") or "News"
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content={"topic": name, "items": items},
            confidence=_CONFIDENCE,
            source=feed_title,
            title=f"{section} news",
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.NEWS, name), settings.CACHE_TTL_NEWS, _fetch
    )


def _normalize_story(story: dict) -> dict:
    posted = story.get("time")
    return {
        "title": story.get("title"),
        "url": story.get("url"),
        "score": story.get("score"),
        "author": story.get("by"),
        "comments": story.get("descendants"),
        "time": datetime.fromtimestamp(posted, UTC).isoformat() if posted else None,
    }


async def get_hacker_news(cache: CacheLayer, kind: str | None = None) -> SourceResult | None:
    """The first few stories of a Hacker News list (top, new, best, ask, show)."""
    list_name = kind if kind in HACKER_NEWS_LISTS else "top"

    async def _fetch() -> SourceResult | None:
        ids = await fetch_json(
            "hackernews", _HN_LIST_URL.format(endpoint=HACKER_NEWS_LISTS[list_name])
        )
        if not isinstance(ids, list) or not ids:
            return None
        stories = await asyncio.gather(
            *(
                fetch_json(
                    "hackernews",
                    _HN_ITEM_URL.format(item_id=item_id),
                    timeout=_STORY_TIMEOUT,
                    max_attempts=1,
                )
                for item_id in ids[:_MAX_STORIES]
            )
        )
        normalized = [_normalize_story(s) for s in stories if isinstance(s, dict)]
        if not normalized:
            logger.info("news.hacker_news_empty", kind=list_name)
            return None
        return SourceResult(
            type=ResultType.LIVE_DATA,
            content={"kind": list_name, "stories": normalized},
            confidence=_CONFIDENCE,
            source="Hacker News",
            title=f"Hacker News {list_name} stories",
        )

    return await cache.get_or_fetch(
        cache_key(CacheKeys.HACKER_NEWS, list_name), settings.CACHE_TTL_HACKER_NEWS, _fetch
    )
