"""Quote, joke and trivia fetchers.

Uncached: every call should return something new.
"""

import html
import random

import structlog

from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult

logger = structlog.get_logger(__name__)

_QUOTABLE_URL = "https://api.quotable.io/random"
_JOKEAPI_URL = "https://v2.jokeapi.dev/joke/{category}"
_JOKE_BLACKLIST = "nsfw,religious,political,racist,sexist"
_OPENTDB_URL = "https://opentdb.com/api.php"
_CONFIDENCE = 0.9


async def get_quote(tag: str | None = None) -> SourceResult | None:
    data = await fetch_json("quotable", _QUOTABLE_URL, params={"tags": tag} if tag else None)
    if not isinstance(data, dict) or not data.get("content"):
        return None
    return SourceResult(
        type=ResultType.LIVE_DATA,
        content={
            "quote": data["content"],
            "author": data.get("author"),
            "tags": data.get("tags", []),
        },
        confidence=_CONFIDENCE,
        source="Quotable API",
    )


async def get_joke(category: str = "Any") -> SourceResult | None:
    data = await fetch_json(
        "jokeapi",
        _JOKEAPI_URL.format(category=category),
        params={"blacklistFlags": _JOKE_BLACKLIST},
    )
    if not isinstance(data, dict) or data.get("error"):
        return None

    if data.get("type") == "single":
        content = {"type": "single", "joke": data.get("joke")}
    else:
        content = {"type": "twopart", "setup": data.get("setup"), "delivery": data.get("delivery")}
    content["category"] = data.get("category")

    if not (content.get("joke") or content.get("setup")):
        return None
    return SourceResult(
        type=ResultType.LIVE_DATA,
        content=content,
        confidence=_CONFIDENCE,
        source="JokeAPI",
    )


async def get_trivia_question(
    category: int | None = None, difficulty: str = "medium"
) -> SourceResult | None:
    """One multiple-choice question with HTML entities decoded and answers shuffled."""
    params: dict[str, str | int] = {"amount": 1, "difficulty": difficulty, "type": "multiple"}
    if category is not None:
        params["category"] = category
    data = await fetch_json("opentdb", _OPENTDB_URL, params=params)
    results = data.get("results") if isinstance(data, dict) else None
    if not results:
        return None

    question = results[0]
    correct = html.unescape(question.get("correct_answer", ""))
    incorrect = [html.unescape(a) for a in question.get("incorrect_answers", [])]
    answers = [correct, *incorrect]
    random.shuffle(answers)
    return SourceResult(
        type=ResultType.LIVE_DATA,
        content={
            "question": html.unescape(question.get("question", "")),
            "correct_answer": correct,
            "incorrect_answers": incorrect,
            "all_answers": answers,
            "category": html.unescape(question.get("category", "")),
            "difficulty": question.get("difficulty"),
        },
        confidence=_CONFIDENCE,
        source="Open Trivia DB",
    )
