"""IntentAnalyzer: rule-based query classification and parameter extraction.

Runs first in the orchestrator pipeline so every source fetcher knows what to
look up. An ordered list of rule groups is evaluated against the lowercased
query; the first group that matches sets ``primary_intent`` and its
confidence, later groups only add their category flag and parameters (a query
can need both weather and time). Matching never raises.

Stateless: a single analyzer instance is shared across requests.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, NamedTuple

import structlog

from knowledge_engine.core.config import settings
from knowledge_engine.models.schemas import Category, Intent, IntentAnalysis

logger = structlog.get_logger(__name__)

# Words that can never stand alone as a location ("is a", "the", "me").
_FUNCTION_WORDS = frozenset(
    {
        "a", "an", "and", "are", "at", "be", "current", "do", "does", "for", "i",
        "in", "is", "it", "it's", "its", "know", "like", "local", "me", "of", "on",
        "s", "tell", "that", "the", "there", "this", "to", "what", "what's", "whats",
        "you",
    }
)  # fmt: skip
_LOCATION_FILLER = re.compile(
    r"\b(right now|at the moment|currently|now|please|today|tonight|tomorrow|outside)\b"
)
_LOCATION_SPLIT = re.compile(r"\s+(?:and|&)\s+|,\s*(?:and\s+)?(?:what|how)\b")

_QUESTION_PREFIX = re.compile(
    r"^(what|who|when|where|why|how|is|are|was|were|can|could|do|does|did)\s+", re.IGNORECASE
)

# --- time -------------------------------------------------------------------
_TIME_PATTERNS = [
    re.compile(
        r"what(?:'s| is)(?: the)? (?:current )?time (?:in|at|for) (.+?)(?:\?|$|right now|now)"
    ),
    re.compile(r"what time is it (?:in|at) (.+?)(?:\?|$)"),
    re.compile(r"(?:tell|do) (?:me|you know) (?:the )?time (?:in|at|for) (.+?)(?:\?|$)"),
    re.compile(r"(?:current |local )?time (?:in|at|for) (.+?)(?:\?|$)"),
    re.compile(r"(.+?) time(?:\?|$| right now| now| please)"),
]
_GENERAL_TIME = re.compile(
    r"\b(what time|current time|time now|what's the time|what is the time)\b"
)

# --- date -------------------------------------------------------------------
_DATE = re.compile(
    r"\b(what(?:'s| is) (?:the )?date|today(?:'s)? date|current date|what day|"
    r"day of (?:the )?week|what is today)\b"
)

# --- public holidays --------------------------------------------------------
_HOLIDAYS = re.compile(r"\b(?:public |bank |national |federal )?holidays?\b")
_HOLIDAY_PLACE = re.compile(
    r"holidays?\s+(?:in|for|of)\s+(?:the\s+)?([a-z][a-z .'-]*?)"
    r"(?:\s+(?:in\s+)?(?:19|20)\d{2})?\s*(?:\?|$)"
)
_YEAR = re.compile(r"\b((?:19|20)\d{2})\b")
_HOLIDAY_COUNTRY_CODES = {
    "us": "US", "usa": "US", "united states": "US", "america": "US",
    "uk": "GB", "united kingdom": "GB", "britain": "GB", "great britain": "GB", "england": "GB",
    "canada": "CA", "mexico": "MX", "brazil": "BR", "argentina": "AR",
    "germany": "DE", "france": "FR", "spain": "ES", "italy": "IT", "portugal": "PT",
    "netherlands": "NL", "ireland": "IE", "sweden": "SE", "norway": "NO", "poland": "PL",
    "india": "IN", "japan": "JP", "china": "CN", "south korea": "KR", "korea": "KR",
    "australia": "AU", "new zealand": "NZ", "south africa": "ZA",
}  # fmt: skip

# --- weather / air quality --------------------------------------------------
_WEATHER_PATTERNS = [
    re.compile(
        r"(?:what(?:'s| is)(?: the)? weather|how(?:'s| is)(?: the)? weather)\s+"
        r"(?:like\s+)?(?:in|at|for)\s+(.+?)(?:\?|$)"
    ),
    re.compile(r"forecast\s+(?:for\s+|in\s+)?(.+?)(?:\?|$)"),
    re.compile(r"weather\s+(?:like\s+)?(?:in\s+|at\s+|for\s+)?(.+?)(?:\?|$)"),
    re.compile(r"temperature\s+(?:in\s+|at\s+)?(.+?)(?:\?|$)"),
    re.compile(
        r"(?:is it|will it)\s+(?:be\s+)?(?:rain|snow|sunny|cloudy|hot|cold)\w*\s+"
        r"(?:in\s+)?(.+?)(?:\?|$)"
    ),
    re.compile(r"(?:how hot|how cold)\s+(?:is it\s+)?(?:in\s+)?(.+?)(?:\?|$)"),
]
_WEATHER_KEYWORD = re.compile(r"\b(weather|forecast)\b")

_AIR_QUALITY = re.compile(
    r"\b(?:air quality|aqi|air pollution|pollution level)s?\s+(?:index\s+)?"
    r"(?:in|at|for|of)\s+(.+?)(?:\?|$)"
)
_AIR_QUALITY_KEYWORD = re.compile(r"\b(air quality|aqi|air pollution)\b")

# --- currency ---------------------------------------------------------------
_CURRENCY_CODES = frozenset(
    {
        "usd", "eur", "gbp", "jpy", "inr", "cad", "aud", "cny", "chf", "sgd", "hkd",
        "krw", "mxn", "brl", "zar", "nzd", "sek", "nok", "dkk", "pln", "try", "rub",
        "aed", "sar", "pkr", "thb", "idr", "php", "myr",
    }
)  # fmt: skip
_CURRENCY_ALIASES = {
    "dollar": "USD", "dollars": "USD", "bucks": "USD",
    "euro": "EUR", "euros": "EUR",
    "pound": "GBP", "pounds": "GBP", "sterling": "GBP",
    "yen": "JPY",
    "rupee": "INR", "rupees": "INR",
    "yuan": "CNY", "rmb": "CNY", "renminbi": "CNY",
    "franc": "CHF", "francs": "CHF",
    "peso": "MXN", "pesos": "MXN",
    "won": "KRW",
    "real": "BRL", "reais": "BRL",
    "rand": "ZAR",
}  # fmt: skip
_CONVERT = re.compile(r"convert\s+(\d+(?:\.\d+)?)\s*([a-z]+)\s+(?:to|into)\s+([a-z]+)")
_BARE_CONVERT = re.compile(r"^(\d+(?:\.\d+)?)\s*([a-z]{3})\s+(?:to|in)\s+([a-z]{3})\b")
_CURRENCY_RATE = re.compile(r"\b(exchange rates?|currency rates?|forex)\b")
_CURRENCY_PAIR = re.compile(r"\b([a-z]{3})\s+to\s+([a-z]{3})\b")
_CURRENCY_BASE = re.compile(r"\b(?:exchange|currency) rates?\s+(?:for|of)\s+([a-z]{3})\b")

# --- crypto -----------------------------------------------------------------
_CRYPTO_ALIASES = {
    "bitcoin": "bitcoin", "btc": "bitcoin",
    "ethereum": "ethereum", "eth": "ethereum",
    "dogecoin": "dogecoin", "doge": "dogecoin",
    "litecoin": "litecoin", "ltc": "litecoin",
    "ripple": "ripple", "xrp": "ripple",
    "cardano": "cardano",
    "solana": "solana",
    "polkadot": "polkadot",
}  # fmt: skip
_CRYPTO_NAME = re.compile(r"\b(" + "|".join(_CRYPTO_ALIASES) + r")\b")
_CRYPTO_MARKET = re.compile(
    r"\b(crypto prices?|cryptocurrenc(?:y|ies)|top cryptos?|crypto market|top coins)\b"
)

# --- news -------------------------------------------------------------------
_HACKER_NEWS = re.compile(r"\bhacker ?news\b")
_HACKER_NEWS_KIND = re.compile(
    r"\b(top|new|newest|best|ask|show)\s+(?:stories|posts|hn|hacker ?news)\b"
)
_NEWS = re.compile(r"\b(news|headlines?|current events)\b")
_NEWS_TOPIC_ALIASES = {
    "technology": "technology", "tech": "technology",
    "science": "science",
    "business": "business", "finance": "business",
    "world": "world", "international": "world",
    "health": "health", "medical": "health",
    "sports": "sports", "sport": "sports",
    "politics": "politics", "political": "politics",
    "arts": "arts", "art": "arts",
    "movies": "movies", "movie": "movies", "film": "movies",
    "books": "books", "book": "books",
}  # fmt: skip
_NEWS_TOPIC = re.compile(r"\b(" + "|".join(_NEWS_TOPIC_ALIASES) + r")\b")

# --- country facts ----------------------------------------------------------
_COUNTRY_PATTERNS = [
    re.compile(
        r"\b(?:capital(?: city)?|population|official languages?|national language|"
        r"languages? spoken|currency|flag|calling code|dialing code|continent)\s+"
        r"(?:of|in)\s+([a-z][a-z .'-]*?)\s*(?:\?|$)"
    ),
    re.compile(
        r"\bcountry\s+(?:info(?:rmation)?|facts|profile|details)\s+"
        r"(?:for\s+|about\s+|on\s+|of\s+)?([a-z][a-z .'-]*?)\s*(?:\?|$)"
    ),
]

# --- dictionary -------------------------------------------------------------
_DICTIONARY = re.compile(
    r"(?:define|definition of|meaning of|what does|what is a|what's a)\s+['\"“‘]?([a-z][a-z-]*)"
)

# --- math -------------------------------------------------------------------
_MATH_WORDS = [
    (re.compile(r"\bmultiplied by\b"), "*"),
    (re.compile(r"\bdivided by\b"), "/"),
    (re.compile(r"\btimes\b"), "*"),
    (re.compile(r"\bplus\b"), "+"),
    (re.compile(r"\bminus\b"), "-"),
    (re.compile(r"\bto the power of\b"), "^"),
]
_MATH_CHARS = re.compile(r"^[\d\s+\-*/^x×÷().%]+$")
_MATH_OPERATOR = re.compile(r"[+\-*/^x×÷%]")
_MATH_PHRASE = re.compile(r"(?:calculate|compute|evaluate|what is|what's|whats)\s+(.+?)(?:\?|=|$)")

# --- entertainment ----------------------------------------------------------
_QUOTE = re.compile(r"\b(quotes?|inspiration(?:al)?|motivat\w*|wisdom)\b")
_JOKE = re.compile(r"\b(jokes?|funny|make me laugh|humou?r)\b")
_TRIVIA = re.compile(r"\b(trivia|quiz|fun fact|did you know|random fact)\b")

# --- encyclopedic knowledge -------------------------------------------------
_KNOWLEDGE = re.compile(
    r"\b(what is|who is|what are|who are|explain|tell me about|describe|"
    r"history of|biography of|how does|how do|why is|why are)\b"
)
_KNOWLEDGE_TERM = re.compile(
    r"(?:what is|who is|what are|who are|explain|tell me about|describe|history of|"
    r"biography of|how does|how do|why is|why are)\s+(?:the\s+|a\s+|an\s+)?(.+?)(?:\?|$)"
)

_MIN_WEB_SEARCH_LENGTH = 3
# Queries already answered by a live source need no encyclopedia lookup.
_NOT_ENCYCLOPEDIC = frozenset(
    {Category.TIME, Category.WEATHER, Category.MATH, Category.NEWS, Category.HOLIDAYS}
)


class QueryText(NamedTuple):
    original: str
    lower: str


@dataclass(frozen=True)
class RuleMatch:
    """Outcome of one rule group: its confidence plus whatever it extracted."""

    confidence: float
    params: dict[str, Any] = field(default_factory=dict)
    search_terms: tuple[str, ...] = ()
    intent: Intent | None = None
    extra_categories: tuple[Category, ...] = ()


Matcher = Callable[[QueryText, "AnalysisBuilder"], RuleMatch | None]


@dataclass(frozen=True)
class IntentRule:
    name: str
    category: Category
    intent: Intent
    matcher: Matcher


@dataclass
class AnalysisBuilder:
    """Accumulates flags and parameters, then finalizes an immutable analysis.

    Parameters are first-writer-wins so a later, looser rule never replaces a
    value extracted by a more specific one.
    """

    query: str
    categories: set[Category] = field(default_factory=set)
    params: dict[str, Any] = field(default_factory=dict)
    search_terms: list[str] = field(default_factory=list)
    primary_intent: Intent | None = None
    confidence: float = 0.0

    def apply(self, rule: IntentRule, match: RuleMatch) -> None:
        self.categories.add(rule.category)
        self.categories.update(match.extra_categories)
        for key, value in match.params.items():
            if value is not None:
                self.params.setdefault(key, value)
        for term in match.search_terms:
            if term and term not in self.search_terms:
                self.search_terms.append(term)
        if self.primary_intent is None:
            self.primary_intent = match.intent or rule.intent
            self.confidence = match.confidence

    def build(self) -> IntentAnalysis:
        return IntentAnalysis(
            query=self.query,
            categories=frozenset(self.categories),
            search_terms=tuple(self.search_terms),
            primary_intent=self.primary_intent,
            confidence=self.confidence,
            **self.params,
        )


# ---------------------------------------------------------------------------
# Extraction helpers
# ---------------------------------------------------------------------------


def clean_location(raw: str | None) -> str | None:
    """Trim filler from a captured location; None if nothing meaningful is left."""
    if not raw:
        return None
    text = _LOCATION_SPLIT.split(raw, maxsplit=1)[0]
    text = _LOCATION_FILLER.sub(" ", text.replace("?", " "))
    tokens = [t.strip(" ,.!") for t in text.split()]
    tokens = [t for t in tokens if t]
    while tokens and tokens[0] in _FUNCTION_WORDS:
        tokens.pop(0)
    while tokens and tokens[-1] in _FUNCTION_WORDS:
        tokens.pop()
    location = " ".join(tokens)
    if len(location) < 2:
        return None
    return location


def normalize_currency(token: str) -> str:
    return _CURRENCY_ALIASES.get(token.lower(), token.upper())


def normalize_math(expression: str) -> str:
    text = expression.strip()
    for pattern, symbol in _MATH_WORDS:
        text = pattern.sub(symbol, text)
    return text


def _as_arithmetic(expression: str) -> str | None:
    """Return the evaluator-ready expression if ``expression`` is pure arithmetic."""
    text = normalize_math(expression)
    if not _MATH_CHARS.match(text):
        return None
    if not re.search(r"\d", text) or not _MATH_OPERATOR.search(text):
        return None
    return re.sub(r"[x×]", "*", text).replace("÷", "/").strip()


def strip_question_prefix(text: str) -> str:
    """'Where do penguins live?' -> 'penguins live'."""
    stripped = text.replace("?", "").strip()
    while True:
        shorter = _QUESTION_PREFIX.sub("", stripped, count=1)
        if shorter == stripped:
            return stripped
        stripped = shorter


# ---------------------------------------------------------------------------
# Rule matchers (evaluated in the order of DEFAULT_RULES)
# ---------------------------------------------------------------------------


def _match_time(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    for pattern in _TIME_PATTERNS:
        match = pattern.search(q.lower)
        if match:
            location = clean_location(match.group(1))
            if location:
                return RuleMatch(0.95, {"time_location": location})
    if _GENERAL_TIME.search(q.lower):
        return RuleMatch(0.8, {"time_location": "UTC"})
    return None


def _match_date(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    return RuleMatch(0.9) if _DATE.search(q.lower) else None


def _match_holidays(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    if not _HOLIDAYS.search(q.lower):
        return None
    params: dict[str, Any] = {}
    place = _HOLIDAY_PLACE.search(q.lower)
    name = clean_location(place.group(1)) if place else None
    if name:
        code = _HOLIDAY_COUNTRY_CODES.get(name)
        # Unknown names are resolved to a country code at fetch time.
        params["holiday_country"] = code or (name.upper() if len(name) == 2 else name)
    year = _YEAR.search(q.lower)
    if year:
        params["holiday_year"] = int(year.group(1))
    return RuleMatch(0.9, params)


def _match_weather(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    for pattern in _WEATHER_PATTERNS:
        match = pattern.search(q.lower)
        if match:
            location = clean_location(match.group(1)) or settings.DEFAULT_WEATHER_LOCATION
            return RuleMatch(0.95, {"weather_location": location})
    if _WEATHER_KEYWORD.search(q.lower):
        return RuleMatch(0.85, {"weather_location": settings.DEFAULT_WEATHER_LOCATION})
    return None


def _match_air_quality(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    match = _AIR_QUALITY.search(q.lower)
    if match:
        location = clean_location(match.group(1)) or settings.DEFAULT_WEATHER_LOCATION
        return RuleMatch(0.9, {"weather_location": location})
    if _AIR_QUALITY_KEYWORD.search(q.lower):
        return RuleMatch(0.85, {"weather_location": settings.DEFAULT_WEATHER_LOCATION})
    return None


def _match_currency_convert(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    match = _CONVERT.search(q.lower)
    confidence = 0.95
    if match is None:
        match = _BARE_CONVERT.search(q.lower.strip())
        if match is None or not {match.group(2), match.group(3)} <= _CURRENCY_CODES:
            return None
        confidence = 0.9
    return RuleMatch(
        confidence,
        {
            "currency_amount": float(match.group(1)),
            "currency_from": normalize_currency(match.group(2)),
            "currency_to": normalize_currency(match.group(3)),
        },
    )


def _match_currency_rate(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    params: dict[str, Any] = {}
    pair = _CURRENCY_PAIR.search(q.lower)
    if pair and pair.group(1) in _CURRENCY_CODES:
        params["currency_from"] = pair.group(1).upper()
        if pair.group(2) in _CURRENCY_CODES:
            params["currency_to"] = pair.group(2).upper()
    base = _CURRENCY_BASE.search(q.lower)
    if base and base.group(1) in _CURRENCY_CODES:
        params.setdefault("currency_from", base.group(1).upper())
    if not params and not _CURRENCY_RATE.search(q.lower):
        return None
    return RuleMatch(0.85, params)


def _match_crypto_name(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    match = _CRYPTO_NAME.search(q.lower)
    if match is None:
        return None
    return RuleMatch(0.9, {"crypto_name": _CRYPTO_ALIASES[match.group(1)]})


def _match_crypto_market(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    if not _CRYPTO_MARKET.search(q.lower):
        return None
    return RuleMatch(0.85, {"crypto_name": "top"})


def _match_news(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    if _HACKER_NEWS.search(q.lower):
        kind = _HACKER_NEWS_KIND.search(q.lower)
        name = kind.group(1) if kind else "top"
        return RuleMatch(0.9, {"hacker_news_kind": "new" if name == "newest" else name})
    if not _NEWS.search(q.lower):
        return None
    topic = _NEWS_TOPIC.search(q.lower)
    return RuleMatch(
        0.85,
        {"news_topic": _NEWS_TOPIC_ALIASES[topic.group(1)] if topic else None},
    )


def _match_country(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    for pattern in _COUNTRY_PATTERNS:
        match = pattern.search(q.lower)
        if match:
            name = clean_location(match.group(1))
            if name:
                return RuleMatch(0.85, {"country_name": name}, search_terms=(name,))
    return None


def _match_dictionary(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    match = _DICTIONARY.search(q.lower)
    if match is None:
        return None
    word = match.group(1).strip("-")
    return RuleMatch(0.95, {"dictionary_term": word}, search_terms=(word,))


def _match_math(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
    direct = _as_arithmetic(q.lower)
    if direct:
        return RuleMatch(0.95, {"math_expression": direct})
    phrase = _MATH_PHRASE.search(q.lower)
    if phrase:
        expression = _as_arithmetic(phrase.group(1))
        if expression:
            return RuleMatch(0.9, {"math_expression": expression})
    return None


def _keyword_matcher(pattern: re.Pattern[str], confidence: float) -> Matcher:
    def _match(q: QueryText, _state: AnalysisBuilder) -> RuleMatch | None:
        return RuleMatch(confidence) if pattern.search(q.lower) else None

    return _match


def _match_knowledge(q: QueryText, state: AnalysisBuilder) -> RuleMatch | None:
    if not _KNOWLEDGE.search(q.lower):
        return None
    if state.categories & _NOT_ENCYCLOPEDIC:
        return None
    term_match = _KNOWLEDGE_TERM.search(q.lower)
    term = term_match.group(1).strip() if term_match else None
    return RuleMatch(
        0.8,
        {"encyclopedia_term": term},
        search_terms=(term,) if term else (),
    )


def _match_web_search(q: QueryText, state: AnalysisBuilder) -> RuleMatch | None:
    if state.primary_intent is not None:
        return None
    stripped = q.original.strip()
    if len(stripped) <= _MIN_WEB_SEARCH_LENGTH:
        return None
    if stripped.endswith("?"):
        term = strip_question_prefix(stripped) or stripped.replace("?", "").strip()
        return RuleMatch(
            0.6,
            {"encyclopedia_term": term},
            search_terms=(term,),
            extra_categories=(Category.ENCYCLOPEDIA,),
        )
    return RuleMatch(0.5, search_terms=(stripped.replace("?", "").strip(),))


DEFAULT_RULES: tuple[IntentRule, ...] = (
    IntentRule("time", Category.TIME, Intent.TIME, _match_time),
    IntentRule("date", Category.DATE, Intent.DATE, _match_date),
    IntentRule("holidays", Category.HOLIDAYS, Intent.HOLIDAYS, _match_holidays),
    IntentRule("weather", Category.WEATHER, Intent.WEATHER, _match_weather),
    IntentRule("air_quality", Category.AIR_QUALITY, Intent.AIR_QUALITY, _match_air_quality),
    IntentRule(
        "currency_convert", Category.CURRENCY, Intent.CURRENCY_CONVERT, _match_currency_convert
    ),
    IntentRule("currency_rate", Category.CURRENCY, Intent.CURRENCY, _match_currency_rate),
    IntentRule("crypto_name", Category.CRYPTO, Intent.CRYPTO, _match_crypto_name),
    IntentRule("crypto_market", Category.CRYPTO, Intent.CRYPTO, _match_crypto_market),
    IntentRule("news", Category.NEWS, Intent.NEWS, _match_news),
    IntentRule("country", Category.COUNTRY, Intent.COUNTRY, _match_country),
    IntentRule("dictionary", Category.DICTIONARY, Intent.DICTIONARY, _match_dictionary),
    IntentRule("math", Category.MATH, Intent.MATH, _match_math),
    IntentRule("quote", Category.QUOTE, Intent.QUOTE, _keyword_matcher(_QUOTE, 0.85)),
    IntentRule("joke", Category.JOKE, Intent.JOKE, _keyword_matcher(_JOKE, 0.9)),
    IntentRule("trivia", Category.TRIVIA, Intent.TRIVIA, _keyword_matcher(_TRIVIA, 0.85)),
    IntentRule("knowledge", Category.ENCYCLOPEDIA, Intent.KNOWLEDGE, _match_knowledge),
    IntentRule("web_search", Category.WEB_SEARCH, Intent.WEB_SEARCH, _match_web_search),
)


class IntentAnalyzer:
    """Evaluates an ordered rule cascade against a query."""

    def __init__(self, rules: Sequence[IntentRule] = DEFAULT_RULES):
        self._rules = tuple(rules)

    def analyze(self, query: str) -> IntentAnalysis:
        """Classify ``query``. Never raises; a broken rule is skipped and logged."""
        text = QueryText(original=query, lower=query.lower())
        builder = AnalysisBuilder(query=query)
        for rule in self._rules:
            try:
                match = rule.matcher(text, builder)
            except Exception:
                logger.exception("intent.rule_error", rule=rule.name, query_preview=query[:80])
                continue
            if match is not None:
                builder.apply(rule, match)

        analysis = builder.build()
        logger.info(
            "intent.analyzed",
            primary_intent=analysis.primary_intent,
            confidence=analysis.confidence,
            categories=[c.value for c in analysis.needed_categories],
            search_terms=list(analysis.search_terms),
        )
        return analysis


_default_analyzer = IntentAnalyzer()


def analyze_query(query: str) -> IntentAnalysis:
    """Classify ``query`` with the shared default analyzer."""
    return _default_analyzer.analyze(query)
