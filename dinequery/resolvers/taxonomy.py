"""Map free text to canonical taxonomy ids.

Rows match in three passes: the row's own names, a curated variation
table, then token-level fuzzy matching. The query is synonym-expanded
first so inflected forms ("pizzu", "pizzom") collapse onto one token.
"""

import re
from typing import Any

import structlog
from pydantic import BaseModel

from dinequery.cache import ResultCache
from dinequery.config import get_settings
from dinequery.models.domain import TaxonomyDimension, TaxonomyRow, TaxonomyTables
from dinequery.resolvers.text import contains_phrase, levenshtein_at_most_one, normalize_text, tokenize

logger = structlog.get_logger()
settings = get_settings()

FUZZY_THRESHOLD = 0.8

# Inflected, foreign and misspelled forms -> canonical token
SYNONYM_MAP: dict[str, str] = {
    "pizze": "pizza",
    "pizzu": "pizza",
    "pizzom": "pizza",
    "pizzama": "pizza",
    "pica": "pizza",
    "pice": "pizza",
    "picu": "pizza",
    "lazanje": "lasagna",
    "lazanja": "lasagna",
    "lazanju": "lasagna",
    "kava": "coffee",
    "kavu": "coffee",
    "kavom": "coffee",
    "kafe": "coffee",
    "caj": "tea",
    "biftek": "steak",
    "bifteka": "steak",
    "odrezak": "steak",
    "hamburgeri": "burger",
    "hamburgera": "burger",
    "burgera": "burger",
    "burgeri": "burger",
    "ribe": "fish",
    "ribu": "fish",
    "ribom": "fish",
    "morski plodovi": "seafood",
    "salata": "salad",
    "salate": "salad",
    "salatu": "salad",
    "juha": "soup",
    "juhu": "soup",
    "corba": "soup",
    "desert": "dessert",
    "deserta": "dessert",
    "sladoled": "ice cream",
    "sladoleda": "ice cream",
    "torta": "cake",
    "tortu": "cake",
    "kolac": "cake",
    "kolaca": "cake",
    "tjestenina": "pasta",
    "tjesteninu": "pasta",
    "spageti": "spaghetti",
    "spagete": "spaghetti",
    "susi": "sushi",
    "susija": "sushi",
}

# Keyed by the row's normalized English name
FOOD_TYPE_VARIATIONS: dict[str, list[str]] = {
    "italian cuisine": ["italian", "talijanski", "talijansko", "talijanska"],
    "chinese cuisine": ["chinese", "kineski", "kinesko", "kineska"],
    "japanese cuisine": ["japanese", "japanski", "japansko", "japanska", "sushi", "ramen"],
    "mexican cuisine": ["mexican", "meksicki", "meksicko", "meksicka", "taco", "burrito"],
    "american cuisine": ["american", "americki", "americko", "americka", "burger"],
    "thai cuisine": ["thai", "tajlandski", "tajlandsko", "tajlandska"],
    "indian food": ["indian", "indijski", "indijsko", "indijska", "curry"],
    "french cuisine": ["french", "francuski", "francusko", "francuska"],
    "turkish cuisine": ["turkish", "turski", "tursko", "turska", "kebab"],
    "greek cuisine": ["greek", "grcki", "grcko", "grcka", "gyros"],
    "mediterranean cuisine": ["mediterranean", "mediteranski", "mediteransko", "mediteranska"],
    "croatian cuisine": ["croatian", "hrvatski", "hrvatsko", "hrvatska", "domaca kuhinja"],
    "korean cuisine": ["korean", "korejski", "korejsko", "korejska"],
    "lebanese cuisine": ["lebanese", "libanonski", "libanonsko", "libanonska"],
    "bosnian cuisine": ["bosnian", "bosanski", "bosansko", "bosanska", "cevapi"],
    "pizza": ["pizza", "pizzeria", "pizzerija", "picerija"],
    "pasta": ["pasta", "spaghetti", "penne", "carbonara"],
    "burger": ["burger", "cheeseburger"],
    "sushi": ["sushi", "sashimi", "nigiri", "maki"],
    "steak": ["steak", "t-bone", "ribeye"],
    "seafood": ["seafood", "fish", "riba", "plodovi mora"],
    "salad": ["salad", "zelena salata"],
    "soup": ["soup"],
    "sandwich": ["sandwich", "sendvic", "panini"],
    "bbq": ["bbq", "barbecue", "rostilj", "grill"],
    "dessert": ["dessert", "ice cream", "cake"],
}

PERK_VARIATIONS: dict[str, list[str]] = {
    "high chairs available": [
        "high chair",
        "highchair",
        "stolica za djecu",
        "stolice za djecu",
        "stolicu za djecu",
        "djecja stolica",
        "djecje stolice",
        "baby chair",
    ],
    "parking available": ["parking", "parkiranje", "parkiraliste", "garaza"],
    "outdoor seating": ["outdoor", "terrace", "terasa", "terasu", "terasom", "vani", "vanjski"],
    "pet friendly": ["pet friendly", "pets allowed", "kucni ljubimci", "psi dozvoljeni", "dog friendly"],
    "wheelchair accessible": ["wheelchair", "invalidska kolica", "pristupacno"],
    "wifi available": ["wifi", "wi-fi", "internet", "free wifi"],
    "live music": ["live music", "ziva glazba", "svirka"],
    "tv available": ["tv", "television", "televizija"],
    "delivery available": ["delivery", "dostava"],
    "takeaway available": ["takeaway", "take away", "za van", "za ponijeti"],
    "reservations": ["reservation", "rezervacija", "booking"],
    "card payment": ["credit card", "kartica", "karticom", "kreditna kartica"],
}

DIETARY_VARIATIONS: dict[str, list[str]] = {
    "vegan": ["vegan", "vegansko", "veganski", "veganska"],
    "vegetarian": ["vegetarian", "vegetarijansko", "vegetarijanski", "vegetarijanska"],
    "gluten free": ["gluten free", "gluten-free", "bez glutena", "bezglutensko"],
    "lactose free": ["lactose free", "bez laktoze"],
    "halal": ["halal"],
    "kosher": ["kosher", "koser"],
}

ESTABLISHMENT_VARIATIONS: dict[str, list[str]] = {
    "bar": ["bar", "kafic", "caffe bar", "cafe bar"],
    "pizzeria": ["pizzeria", "pizzerija", "picerija"],
    "bistro": ["bistro"],
    "fast food": ["fast food", "brza hrana"],
    "bakery": ["bakery", "pekara", "pekarnica"],
    "pub": ["pub", "pivnica"],
    "tavern": ["tavern", "konoba", "krcma"],
}

# Price categories are keyed by id
PRICE_KEYWORDS: dict[int, list[str]] = {
    1: ["cheap", "budget", "affordable", "jeftino", "jeftin", "povoljno", "povoljan"],
    2: ["moderate", "mid-range", "mid range", "srednje"],
    3: ["expensive", "luxury", "fine dining", "skupo", "skup", "luksuzno"],
}

# Bilingual pairs for menu-item text search
ITEM_SYNONYM_PAIRS: list[tuple[str, str]] = [
    ("stolica za djecu", "high chair"),
    ("djecja stolica", "high chair"),
    ("terasa", "terrace"),
    ("bez glutena", "gluten free"),
    ("vegansko", "vegan"),
    ("vegetarijansko", "vegetarian"),
    ("zeleni rezanci", "spinach tagliatelle"),
    ("njoki", "gnocchi"),
    ("lignje", "squid"),
    ("cevapi", "cevapi"),
    ("cevap", "cevap"),
    ("lazanje", "lasagna"),
    ("tjestenina", "pasta"),
    ("pizza", "pica"),
]

_DIMENSION_FIELDS: dict[str, str] = {
    "food_types": "food_type_ids",
    "dietary_types": "dietary_type_ids",
    "perks": "establishment_perk_ids",
    "establishment_types": "establishment_type_ids",
    "price_categories": "price_category_ids",
    "meal_types": "meal_type_ids",
}

_SYNONYM_RES = [
    (re.compile(rf"(?<![a-z0-9]){re.escape(form)}(?![a-z0-9])"), canonical)
    for form, canonical in sorted(SYNONYM_MAP.items(), key=lambda kv: -len(kv[0]))
]


class TaxonomyFilters(BaseModel):
    """Matched ids per dimension. ``None`` means the text said nothing about it."""

    food_type_ids: list[int] | None = None
    dietary_type_ids: list[int] | None = None
    establishment_perk_ids: list[int] | None = None
    establishment_type_ids: list[int] | None = None
    price_category_ids: list[int] | None = None
    meal_type_ids: list[int] | None = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


def expand_synonyms(text: str) -> str:
    """Normalize text and rewrite known variant forms to their canonical token."""
    expanded = normalize_text(text)
    for pattern, canonical in _SYNONYM_RES:
        expanded = pattern.sub(canonical, expanded)
    return expanded


def token_similarity(term: str, token: str) -> float:
    """Score how well one normalized token matches one normalized term."""
    if not term or not token:
        return 0.0
    if token == term:
        return 1.0
    if token.startswith(term):
        return 0.92
    score = 0.75 if term in token else 0.0
    if len(term) >= 5 and len(token) >= len(term):
        if levenshtein_at_most_one(term, token[: len(term)]):
            score = max(score, 0.85)
    return score


def similarity(query: str, term: str) -> float:
    """Best token score of ``term`` against the synonym-expanded ``query``."""
    text = expand_synonyms(query)
    norm_term = expand_synonyms(term)
    if not text or not norm_term:
        return 0.0
    if contains_phrase(text, norm_term):
        return 1.0

    term_words = norm_term.split()
    tokens = tokenize(text)
    # every word of a multi-word term has to find a token
    return min(
        max((token_similarity(word, token) for token in tokens), default=0.0)
        for word in term_words
    )


def matches(query: str, term: str, threshold: float = FUZZY_THRESHOLD) -> bool:
    """True when ``term`` is present in ``query`` exactly, by synonym, or fuzzily."""
    return similarity(query, term) >= threshold


def expand_item_terms(item_name: str) -> list[str]:
    """Search terms for a menu item in both languages."""
    term = normalize_text(item_name)
    if not term:
        return []
    terms = [term]
    canonical = expand_synonyms(term)
    if canonical != term:
        terms.append(canonical)
    for hr, en in ITEM_SYNONYM_PAIRS:
        if hr in term or en in term or hr in canonical or en in canonical:
            terms.extend([hr, en])
    return list(dict.fromkeys(terms))


def _row_keywords(dimension: TaxonomyDimension, row: TaxonomyRow) -> list[str]:
    name_en = normalize_text(row.name_en)
    keywords = [name_en, normalize_text(row.name_hr)]
    if dimension == "food_types":
        keywords += FOOD_TYPE_VARIATIONS.get(name_en, [])
    elif dimension == "perks":
        keywords += PERK_VARIATIONS.get(name_en, [])
    elif dimension == "dietary_types":
        keywords += DIETARY_VARIATIONS.get(name_en, [])
    elif dimension == "establishment_types":
        keywords += ESTABLISHMENT_VARIATIONS.get(name_en, [])
    elif dimension == "price_categories":
        keywords += PRICE_KEYWORDS.get(row.id, [])
    return [k for k in dict.fromkeys(keywords) if k]


def _keyword_present(text: str, keyword: str) -> bool:
    # short keywords ("tv", "bar") only count as whole words
    if len(keyword) < 4:
        return contains_phrase(text, keyword)
    return keyword in text


def row_matches(
    text: str,
    tokens: list[str],
    dimension: TaxonomyDimension,
    row: TaxonomyRow,
    fuzzy: bool = True,
) -> bool:
    """Match one row against already-expanded text and its tokens."""
    keywords = _row_keywords(dimension, row)
    if any(_keyword_present(text, kw) for kw in keywords):
        return True
    if not fuzzy:
        return False
    for kw in keywords:
        if " " in kw or len(kw) < 4:
            continue
        if any(token_similarity(kw, token) >= FUZZY_THRESHOLD for token in tokens):
            return True
    return False


def extract_filters(text: str, tables: TaxonomyTables) -> TaxonomyFilters:
    """Return the ids of every taxonomy row mentioned in ``text``.

    Args:
        text: Free-form user text
        tables: Taxonomy export from the data store

    Returns:
        TaxonomyFilters with empty dimensions left as None
    """
    expanded = expand_synonyms(text)
    tokens = tokenize(expanded)
    found: dict[str, Any] = {}

    for dimension, field in _DIMENSION_FIELDS.items():
        # price words are too short and generic for fuzzy matching
        fuzzy = dimension != "price_categories"
        ids = [
            row.id
            for row in tables.rows(dimension)
            if row_matches(expanded, tokens, dimension, row, fuzzy=fuzzy)
        ]
        if ids:
            found[field] = list(dict.fromkeys(ids))

    return TaxonomyFilters(**found)


def ids_by_dimension(filters: TaxonomyFilters) -> dict[str, list[int]]:
    """Re-key matched ids by dimension name ("perks", "food_types", ...)."""
    dumped = filters.model_dump(exclude_none=True)
    return {dimension: dumped[field] for dimension, field in _DIMENSION_FIELDS.items() if field in dumped}


def message_filter_ids(
    text: str,
    tables: TaxonomyTables,
    searched_terms: list[str] | None = None,
) -> dict[str, list[int]]:
    """Taxonomy ids mentioned anywhere in a message.

    Ids that the searched dish or perk names produce on their own are left
    out, so "veganska pizza" keeps the vegan filter but does not also
    require the pizza cuisine type.

    Args:
        text: Full user message
        tables: Taxonomy export from the data store
        searched_terms: Item or perk names already searched for directly

    Returns:
        Mapping of dimension to ids; dimensions without matches are omitted
    """
    found = ids_by_dimension(extract_filters(text, tables))
    for term in searched_terms or []:
        for dimension, ids in ids_by_dimension(extract_filters(term, tables)).items():
            if dimension in found:
                found[dimension] = [i for i in found[dimension] if i not in ids]
    return {dimension: ids for dimension, ids in found.items() if ids}


def resolve_names(
    names: list[str] | str | None,
    dimension: TaxonomyDimension,
    tables: TaxonomyTables,
) -> list[int]:
    """Map names given by the oracle or the user onto ids of one dimension."""
    if not names:
        return []
    if isinstance(names, str):
        names = [names]
    ids: list[int] = []
    for name in names:
        expanded = expand_synonyms(name)
        tokens = tokenize(expanded)
        for row in tables.rows(dimension):
            if row_matches(expanded, tokens, dimension, row):
                ids.append(row.id)
    return list(dict.fromkeys(ids))


def name_for(
    tables: TaxonomyTables,
    dimension: TaxonomyDimension,
    row_id: int,
    language: str = "hr",
) -> str | None:
    """Display name of a taxonomy id."""
    for row in tables.rows(dimension):
        if row.id == row_id:
            return row.name_en if language == "en" else row.name_hr
    return None


class TaxonomyResolver:
    """Taxonomy matching backed by a TTL-cached table export.

    Args:
        store: Data store exposing ``taxonomy_tables()``
        cache: Cache for the export; defaults to a one-entry cache with
            the configured taxonomy TTL
    """

    _CACHE_KEY = {"taxonomy": "tables"}

    def __init__(self, store, cache: ResultCache | None = None):
        self.store = store
        self.cache = cache or ResultCache(max_size=1, ttl_seconds=settings.taxonomy_ttl_seconds)

    async def tables(self) -> TaxonomyTables:
        """Return taxonomy tables, fetching them when the cached copy expired."""
        cached = self.cache.get(self._CACHE_KEY)
        if cached is not None:
            return cached
        async with self.cache.lock(self._CACHE_KEY):
            cached = self.cache.get(self._CACHE_KEY)
            if cached is not None:
                return cached
            tables = await self.store.taxonomy_tables()
            self.cache.set(self._CACHE_KEY, tables)
            logger.info(
                "taxonomy_tables_loaded",
                food_types=len(tables.food_types),
                perks=len(tables.perks),
            )
            return tables

    async def resolve(self, names: list[str] | str | None, dimension: TaxonomyDimension) -> list[int]:
        return resolve_names(names, dimension, await self.tables())

    async def is_perk(self, text: str) -> bool:
        """True when ``text`` names a known perk."""
        return bool(resolve_names(text, "perks", await self.tables()))
