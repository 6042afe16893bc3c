"""English dictionary lookups via dictionaryapi.dev (Free Dictionary)."""

from urllib.parse import quote

from knowledge_engine.core.http import fetch_json
from knowledge_engine.models.schemas import ResultType, SourceResult

_ENTRIES_URL = "https://api.dictionaryapi.dev/api/v2/entries/en/{word}"
_MAX_MEANINGS = 3
_MAX_DEFINITIONS = 2

CONFIDENCE = 0.95


async def lookup_word(word: str) -> SourceResult | None:
    """First entry for ``word``: up to three meanings with two definitions each."""
    # Unknown words come back as 404, which fetch_json reports as None.
    data = await fetch_json("dictionaryapi", _ENTRIES_URL.format(word=quote(word.strip().lower())))
    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return None

    entry = data[0]
    meanings = [
        {
            "part_of_speech": meaning.get("partOfSpeech"),
            "definitions": [
                {"definition": d.get("definition"), "example": d.get("example")}
                for d in (meaning.get("definitions") or [])[:_MAX_DEFINITIONS]
            ],
        }
        for meaning in (entry.get("meanings") or [])[:_MAX_MEANINGS]
    ]
    if not meanings:
        return None

    return SourceResult(
        type=ResultType.DICTIONARY,
        content=meanings,
        confidence=CONFIDENCE,
        source="Free Dictionary",
        title=entry.get("word", word),
        details={"word": entry.get("word", word), "phonetic": entry.get("phonetic")},
    )
