"""Keyword/pattern fallback used when the oracle is unavailable.

Each extractor returns an optional match; ``parse_heuristic`` combines
them by precedence into one of four coarse intents or ``unknown``.
"""

import re
from typing import Any

import structlog
from pydantic import BaseModel

from dinequery.resolvers.geo import resolve_place
from dinequery.resolvers.taxonomy import PERK_VARIATIONS, expand_synonyms
from dinequery.resolvers.temporal import WEEKDAY_FORMS
from dinequery.resolvers.text import contains_phrase, normalize_text, tokenize

logger = structlog.get_logger()

NEAR_ME_PATTERNS = [
    r"blizu\s+mene",
    r"u\s+(?:mojoj\s+)?blizini",
    r"oko\s+mene",
    r"najbliz\w*",
    r"near\s+me",
    r"nearby",
    r"close\s+to\s+me",
    r"around\s+me",
]
_NEAR_ME_RE = re.compile(r"\b(?:" + "|".join(NEAR_ME_PATTERNS) + r")\b")

# canonical (synonym-expanded) item keywords
ITEM_KEYWORDS = frozenset({
    "lignje", "squid", "lasagna", "pizza", "cevapi", "cevape", "cevap", "burger", "sushi",
    "njoki", "gnocchi", "pasta", "spaghetti", "fish", "riba", "salad", "soup", "coffee",
    "tea", "pivo", "beer", "vino", "wine", "cake", "ice cream", "palacinke", "steak",
    "rizoto", "risotto", "hobotnica", "octopus", "skampi", "kebab", "gyros", "tiramisu",
    "zeleni rezanci", "burek", "strukli", "punjene paprike", "sarma", "pljeskavica",
    "dessert", "ramen", "tacos", "taco", "burrito", "hamburger",
})

STOPWORDS = frozenset({
    "ima", "imaju", "li", "je", "su", "koji", "koja", "koje", "gdje", "mogu", "u", "na",
    "blizu", "mene", "meni", "i", "a", "za", "s", "sa", "od", "do", "the", "an",
    "is", "are", "does", "have", "has", "serve", "serves", "near", "me", "in",
    "with", "and", "restoran", "restorana", "restaurant", "any", "some", "what", "which",
    "otvoren", "otvoreni", "open", "danas", "sutra", "sad", "sada", "neki", "nekakav",
    "jel", "jeli", "dali", "da", "moze", "please", "molim", "there",
})

_QUOTED_RE = re.compile(r"[\"“„«]([^\"”“«»]{2,60})[\"”“»]")
_NAMED_AFTER_RE = re.compile(
    r"\b(?:restoran\w*|restaurant|pizzeri\w*|konob\w*|bistro\w*)\s+"
    r"([A-ZČĆŽŠĐ0-9][\w'&.-]*(?:\s+[A-ZČĆŽŠĐ0-9][\w'&.-]*)*)"
)
_WORD_AFTER_RE = re.compile(r"\b(?:restoran\w*|restaurant)\s+([a-z0-9][a-z0-9'&-]*)")
_CAPITALIZED_RE = re.compile(r"\b([A-ZČĆŽŠĐ][\w'&-]{2,}(?:\s+[A-ZČĆŽŠĐ][\w'&-]+)*)")
_HAS_ITEM_RE = re.compile(r"\bima(?:ju)?(?:\s+li)?\s+([a-z][a-z-]{2,})")
_PLACE_RE = re.compile(r"\b(?:u|na|in|at|kod)\s+([a-z][a-z-]+(?:\s+[a-z][a-z-]+)?)")


class RestaurantNameMatch(BaseModel):
    """A restaurant name candidate; ``explicit`` when a restaurant marker introduced it."""

    name: str
    explicit: bool


class HeuristicResult(BaseModel):
    """Coarse intent chosen by the fallback parser."""

    intent: str
    args: dict[str, Any]
    ambiguous: bool = False


def extract_near_me(text: str) -> bool:
    return _NEAR_ME_RE.search(normalize_text(text)) is not None


def extract_city(text: str) -> str | None:
    """City or neighborhood introduced by a preposition ("u Splitu", "na Trnju")."""
    norm = normalize_text(text)
    for match in _PLACE_RE.finditer(norm):
        words = match.group(1).split()
        for candidate in (" ".join(words), words[0]):
            if candidate in STOPWORDS or len(candidate) < 3:
                continue
            place = resolve_place(candidate)
            if place is not None:
                return place.name
    return None


def _is_place_or_day(word: str) -> bool:
    norm = normalize_text(word)
    return norm in WEEKDAY_FORMS or resolve_place(norm) is not None


def extract_restaurant_name(text: str) -> RestaurantNameMatch | None:
    """Restaurant name from quotes, a "restoran X" phrase, or a capitalized word."""
    quoted = _QUOTED_RE.search(text)
    if quoted:
        return RestaurantNameMatch(name=quoted.group(1).strip(), explicit=True)

    named = _NAMED_AFTER_RE.search(text)
    if named:
        return RestaurantNameMatch(name=named.group(1).strip(" .?!,"), explicit=True)

    norm = normalize_text(text)
    word = _WORD_AFTER_RE.search(norm)
    if word:
        candidate = word.group(1)
        if (
            candidate not in STOPWORDS
            and expand_synonyms(candidate) not in ITEM_KEYWORDS
            and extract_perk(candidate) is None
            and not _is_place_or_day(candidate)
        ):
            return RestaurantNameMatch(name=candidate, explicit=True)

    for match in _CAPITALIZED_RE.finditer(text):
        before = text[: match.start()].rstrip()
        if not before or before[-1] in ".!?":
            continue  # sentence-initial capital
        candidate = match.group(1)
        if _is_place_or_day(candidate) or normalize_text(candidate) in STOPWORDS:
            continue
        return RestaurantNameMatch(name=candidate, explicit=False)
    return None


def extract_item(text: str, exclude: str | None = None) -> str | None:
    """First dish or drink keyword in the text, skipping words of ``exclude``."""
    norm = normalize_text(text)
    skip = set(tokenize(exclude)) if exclude else set()

    for phrase in ITEM_KEYWORDS:
        if " " in phrase and contains_phrase(norm, phrase):
            return phrase

    for token in tokenize(norm):
        if token in skip:
            continue
        if token in ITEM_KEYWORDS or expand_synonyms(token) in ITEM_KEYWORDS:
            return token

    has_item = _HAS_ITEM_RE.search(norm)
    if has_item:
        candidate = has_item.group(1)
        if candidate not in STOPWORDS and candidate not in skip and not _is_place_or_day(candidate):
            if extract_perk(candidate) is None:
                return candidate
    return None


def extract_perk(text: str) -> str | None:
    """First amenity phrase in the text."""
    norm = normalize_text(text)
    for variations in PERK_VARIATIONS.values():
        # longest phrase first so "stolicu za djecu" wins over "djecu"
        for phrase in sorted(variations, key=len, reverse=True):
            if contains_phrase(norm, normalize_text(phrase)):
                return phrase
    return None


def parse_heuristic(text: str) -> HeuristicResult:
    """Combine the extractors into a coarse intent.

    Precedence: an explicit restaurant name with an item gives a
    restaurant-scoped check; otherwise a near-me marker or a known place
    with an item and/or perk gives a nearby search.
    """
    restaurant = extract_restaurant_name(text)
    item = extract_item(text, exclude=restaurant.name if restaurant else None)
    perk = extract_perk(text)
    near_me = extract_near_me(text)
    city = extract_city(text)

    if restaurant is not None and not restaurant.explicit:
        # an unmarked capitalized word that is also a dish could be either
        name_tokens = tokenize(restaurant.name)
        if any(t in ITEM_KEYWORDS or expand_synonyms(t) in ITEM_KEYWORDS for t in name_tokens):
            logger.info("heuristic_ambiguous", restaurant=restaurant.name)
            return HeuristicResult(intent="unknown", args={}, ambiguous=True)

    if restaurant is not None and item:
        args: dict[str, Any] = {"restaurant_name": restaurant.name, "item_name": item}
        if city:
            args["city"] = city
        return HeuristicResult(intent="check_item_in_restaurant", args=args)

    if near_me or city:
        location: dict[str, Any] = {"city": city} if city else {}
        if item and perk:
            return HeuristicResult(
                intent="find_by_item_and_perk_nearby",
                args={"item_name": item, "perk_name": perk, **location},
            )
        if item:
            return HeuristicResult(intent="find_items_nearby", args={"item_name": item, **location})
        if perk:
            return HeuristicResult(intent="find_perk_nearby", args={"perk_name": perk, **location})

    return HeuristicResult(intent="unknown", args={})
