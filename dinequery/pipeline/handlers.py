"""Per-intent execution against the data store."""

import re
from collections import defaultdict
from datetime import datetime
from typing import Any, Awaitable, Callable

import structlog

from dinequery.config import get_settings
from dinequery.datastore import DataStore
from dinequery.hours import restaurant_open_state
from dinequery.models.api import OutcomeCode
from dinequery.models.domain import CandidateResult, MenuItem, Restaurant
from dinequery.models.intents import ResolvedIntent
from dinequery.models.state import ExecutionResult
from dinequery.resolvers.geo import bounding_box, haversine_km, resolve_center
from dinequery.resolvers.taxonomy import TaxonomyResolver, expand_item_terms
from dinequery.resolvers.temporal import parse_time_ref

logger = structlog.get_logger()
settings = get_settings()

ITEMS_PER_RESTAURANT = 3
ITEM_SEARCH_LIMIT = 200
MENU_LIMIT = 300

# results that depend on the wall clock are cached per minute
TIME_DEPENDENT_INTENTS = frozenset({
    "is_restaurant_open",
    "get_restaurant_info",
    "find_open_nearby_with_filters",
})

_GENERIC_NAME_WORDS = re.compile(
    r"\b(?:restoran|restaurant|caffe|cafe|kafic|pizzeria|pizzerija|club|bar|grill|konoba|bistro)\b",
    re.IGNORECASE,
)


def _error(code: OutcomeCode, **facts: Any) -> ExecutionResult:
    return ExecutionResult(kind="error", code=code.value, facts=facts)


def _sorted(candidates: list[CandidateResult]) -> list[CandidateResult]:
    """Ascending distance, ties broken by restaurant id."""
    return sorted(
        candidates,
        key=lambda c: (c.distance_km if c.distance_km is not None else float("inf"), c.restaurant.id),
    )


def _has_any(values: list[int], wanted: list[int] | None) -> bool:
    return not wanted or bool(set(values) & set(wanted))


class IntentExecutor:
    """Run a ResolvedIntent against a DataStore.

    Args:
        store: Restaurant data source
        taxonomy: Resolver for perk, food type and price names
        max_radius_km: Radius cap for nearby searches
        tz: IANA zone for opening-hours evaluation
    """

    def __init__(
        self,
        store: DataStore,
        taxonomy: TaxonomyResolver | None = None,
        max_radius_km: float | None = None,
        tz: str | None = None,
    ):
        self.store = store
        self.taxonomy = taxonomy or TaxonomyResolver(store)
        self.max_radius_km = max_radius_km if max_radius_km is not None else settings.max_radius_km
        self.tz = tz or settings.timezone
        self._handlers: dict[str, Callable[[Any, datetime], Awaitable[ExecutionResult]]] = {
            "check_item_in_restaurant": self.check_item_in_restaurant,
            "get_restaurant_info": self.get_restaurant_info,
            "get_restaurant_menu": self.get_restaurant_menu,
            "is_restaurant_open": self.is_restaurant_open,
            "can_i_reserve_restaurant": self.can_i_reserve_restaurant,
            "find_restaurant_by_name_city": self.find_restaurant_by_name_city,
            "find_items_nearby": self.find_items_nearby,
            "find_perk_nearby": self.find_perk_nearby,
            "find_by_item_and_perk_nearby": self.find_by_item_and_perk_nearby,
            "find_open_nearby_with_filters": self.find_open_nearby_with_filters,
            "find_nearby_by_price_and_types": self.find_nearby_by_price_and_types,
            "find_nearby_by_establishment_type": self.find_nearby_by_establishment_type,
            "find_nearby_with_virtual_tour": self.find_nearby_with_virtual_tour,
            "unknown": self.unknown,
        }

    async def execute(self, intent: ResolvedIntent, now: datetime) -> ExecutionResult:
        """Execute one intent.

        Args:
            intent: Validated intent
            now: Turn timestamp, used for time references

        Returns:
            ExecutionResult; outcome codes report expected misses
        """
        handler = self._handlers[intent.name]
        result = await handler(intent.args, now)
        logger.info(
            "intent_executed",
            intent=intent.name,
            code=result.code,
            candidates=len(result.candidates),
            items=len(result.items),
        )
        return result

    # Restaurant-scoped

    async def lookup_restaurant(self, name: str, city: str | None = None) -> Restaurant | None:
        """Find a restaurant by name, retrying without generic words like "restoran"."""
        restaurant = await self.store.find_restaurant(name, city)
        if restaurant is not None:
            return restaurant

        cleaned = " ".join(_GENERIC_NAME_WORDS.sub(" ", name).split())
        if cleaned and cleaned != name:
            logger.debug("restaurant_lookup_retry", name=name, cleaned=cleaned)
            restaurant = await self.store.find_restaurant(cleaned, city)
        if restaurant is None:
            logger.info("restaurant_not_found", name=name, city=city)
        return restaurant

    async def check_item_in_restaurant(self, args, now: datetime) -> ExecutionResult:
        restaurant = await self.lookup_restaurant(args.restaurant_name, args.city)
        if restaurant is None:
            return _error(OutcomeCode.RESTAURANT_NOT_FOUND, restaurant_name=args.restaurant_name)
        if not restaurant.is_claimed:
            return ExecutionResult(
                kind="error", code=OutcomeCode.NOT_PARTNER.value, restaurant=restaurant
            )

        items = await self.store.search_items(
            expand_item_terms(args.item_name), restaurant_id=restaurant.id, limit=ITEM_SEARCH_LIMIT
        )
        return ExecutionResult(
            kind="menu",
            code=None if items else OutcomeCode.NO_RESULTS.value,
            restaurant=restaurant,
            items=items,
            facts={"item_name": args.item_name, "found": bool(items)},
        )

    async def get_restaurant_info(self, args, now: datetime) -> ExecutionResult:
        restaurant = await self.lookup_restaurant(args.restaurant_name, args.city)
        if restaurant is None:
            return _error(OutcomeCode.RESTAURANT_NOT_FOUND, restaurant_name=args.restaurant_name)
        return ExecutionResult(
            kind="restaurant_info",
            restaurant=restaurant,
            open_state=restaurant_open_state(restaurant, now, self.tz),
            at=now,
        )

    async def get_restaurant_menu(self, args, now: datetime) -> ExecutionResult:
        restaurant = await self.lookup_restaurant(args.restaurant_name, args.city)
        if restaurant is None:
            return _error(OutcomeCode.RESTAURANT_NOT_FOUND, restaurant_name=args.restaurant_name)
        if not restaurant.is_claimed:
            return ExecutionResult(
                kind="error", code=OutcomeCode.NOT_PARTNER.value, restaurant=restaurant
            )

        menu = await self.store.get_menu(restaurant.id, args.menu_type, args.limit or MENU_LIMIT)
        return ExecutionResult(
            kind="menu",
            code=None if menu else OutcomeCode.NO_RESULTS.value,
            restaurant=restaurant,
            items=menu,
            facts={"menu_type": args.menu_type},
        )

    async def is_restaurant_open(self, args, now: datetime) -> ExecutionResult:
        restaurant = await self.lookup_restaurant(args.restaurant_name, args.city)
        if restaurant is None:
            return _error(OutcomeCode.RESTAURANT_NOT_FOUND, restaurant_name=args.restaurant_name)

        at = parse_time_ref(args.at, now, self.tz)
        return ExecutionResult(
            kind="answer",
            restaurant=restaurant,
            open_state=restaurant_open_state(restaurant, at, self.tz),
            at=at,
        )

    async def can_i_reserve_restaurant(self, args, now: datetime) -> ExecutionResult:
        restaurant = await self.lookup_restaurant(args.restaurant_name, args.city)
        if restaurant is None:
            return _error(OutcomeCode.RESTAURANT_NOT_FOUND, restaurant_name=args.restaurant_name)
        return ExecutionResult(
            kind="answer",
            restaurant=restaurant,
            facts={"reservation_enabled": restaurant.reservation_enabled},
        )

    async def find_restaurant_by_name_city(self, args, now: datetime) -> ExecutionResult:
        restaurant = await self.lookup_restaurant(args.name, args.city)
        if restaurant is None:
            return _error(OutcomeCode.RESTAURANT_NOT_FOUND, restaurant_name=args.name)
        return ExecutionResult(kind="restaurant_info", restaurant=restaurant)

    # Nearby

    async def _nearby(
        self, args, claimed_only: bool = True
    ) -> tuple[list[tuple[Restaurant, float]], dict[str, Any]] | None:
        """Restaurants inside the search circle, paired with their distance.

        Returns:
            Tuple of (restaurants with distance, search facts), or None when
            no center can be determined
        """
        lat, lon, radius = resolve_center(
            args.city, args.latitude, args.longitude, args.radius_km, self.max_radius_km
        )
        if lat is None or lon is None:
            return None

        bbox = bounding_box(lat, lon, radius)
        in_box = await self.store.restaurants_in_bbox(bbox, claimed_only=claimed_only)
        inside = []
        for restaurant in in_box:
            distance = haversine_km(lat, lon, restaurant.latitude, restaurant.longitude)
            if distance <= radius:
                inside.append((restaurant, round(distance, 3)))

        facts = {"radius_km": radius, "latitude": lat, "longitude": lon}
        if args.city:
            facts["city"] = args.city
        logger.debug("nearby_candidates", in_box=len(in_box), inside=len(inside), radius_km=radius)
        return inside, facts

    async def _items_by_restaurant(
        self, item_name: str, latitude: float, longitude: float, radius_km: float
    ) -> dict[int, list[MenuItem]]:
        """Matching items grouped by owner, at most three per restaurant."""
        hits = await self.store.search_items(
            expand_item_terms(item_name),
            bbox=bounding_box(latitude, longitude, radius_km),
            limit=ITEM_SEARCH_LIMIT,
        )
        grouped: dict[int, list[MenuItem]] = defaultdict(list)
        for item in hits:
            if len(grouped[item.restaurant_id]) < ITEMS_PER_RESTAURANT:
                grouped[item.restaurant_id].append(item)
        return grouped

    async def _resolve_ids(self, names, dimension) -> list[int] | None:
        """Taxonomy ids for ``names``; None when nothing was asked, [] when nothing matched."""
        if not names:
            return None
        ids = await self.taxonomy.resolve(names, dimension)
        if not ids:
            logger.info("taxonomy_unresolved", dimension=dimension, names=names)
        return ids

    def _restaurants_result(
        self, candidates: list[CandidateResult], facts: dict[str, Any]
    ) -> ExecutionResult:
        ordered = _sorted(candidates)
        return ExecutionResult(
            kind="restaurants",
            code=None if ordered else OutcomeCode.NO_RESULTS.value,
            candidates=ordered,
            facts={**facts, "count": len(ordered)},
        )

    async def _filtered_nearby(
        self,
        args,
        now: datetime,
        item_name: str | None = None,
        predicate: Callable[[Restaurant], bool] | None = None,
        at: datetime | None = None,
        **dimensions: Any,
    ) -> ExecutionResult:
        """Shared nearby search: circle, taxonomy filters, optional item and open-at checks."""
        nearby = await self._nearby(args)
        if nearby is None:
            return _error(OutcomeCode.MISSING_LOCATION)
        inside, facts = nearby
        if item_name:
            facts["item_name"] = item_name

        wanted: dict[str, list[int] | None] = {}
        for dimension, names in dimensions.items():
            ids = await self._resolve_ids(names, dimension)
            if ids == []:
                return self._restaurants_result([], {**facts, "unresolved": dimension})
            wanted[dimension] = ids

        # ids mentioned anywhere in the message widen the same dimension
        for dimension, ids in (args.taxonomy_ids or {}).items():
            wanted[dimension] = list(dict.fromkeys([*(wanted.get(dimension) or []), *ids]))

        items = {}
        if item_name:
            items = await self._items_by_restaurant(
                item_name, facts["latitude"], facts["longitude"], facts["radius_km"]
            )

        candidates = []
        for restaurant, distance in inside:
            if not _has_any(restaurant.establishment_perks, wanted.get("perks")):
                continue
            if not _has_any(restaurant.food_types, wanted.get("food_types")):
                continue
            if not _has_any(restaurant.dietary_types, wanted.get("dietary_types")):
                continue
            if not _has_any(restaurant.meal_types, wanted.get("meal_types")):
                continue
            if not _has_any(restaurant.establishment_types, wanted.get("establishment_types")):
                continue
            price_ids = wanted.get("price_categories")
            if price_ids and restaurant.price_category_id not in price_ids:
                continue
            if predicate is not None and not predicate(restaurant):
                continue
            if item_name and restaurant.id not in items:
                continue

            open_state = None
            if at is not None:
                open_state = restaurant_open_state(restaurant, at, self.tz)
                if open_state.state != "open":
                    continue

            candidates.append(
                CandidateResult(
                    restaurant=restaurant,
                    distance_km=distance,
                    items=items.get(restaurant.id, []),
                    open_state=open_state,
                )
            )
        return self._restaurants_result(candidates, facts)

    async def find_items_nearby(self, args, now: datetime) -> ExecutionResult:
        return await self._filtered_nearby(args, now, item_name=args.item_name)

    async def find_perk_nearby(self, args, now: datetime) -> ExecutionResult:
        result = await self._filtered_nearby(args, now, perks=[args.perk_name])
        result.facts["perk_name"] = args.perk_name
        return result

    async def find_by_item_and_perk_nearby(self, args, now: datetime) -> ExecutionResult:
        result = await self._filtered_nearby(
            args, now, item_name=args.item_name, perks=[args.perk_name]
        )
        result.facts["perk_name"] = args.perk_name
        return result

    async def find_open_nearby_with_filters(self, args, now: datetime) -> ExecutionResult:
        at = parse_time_ref(args.at, now, self.tz)
        result = await self._filtered_nearby(
            args,
            now,
            at=at,
            food_types=args.food_types,
            dietary_types=args.dietary_types,
            meal_types=args.meal_types,
            perks=args.perks,
            price_categories=[args.price_category] if args.price_category else None,
            establishment_types=args.establishment_types,
        )
        result.at = at
        return result

    async def find_nearby_by_price_and_types(self, args, now: datetime) -> ExecutionResult:
        return await self._filtered_nearby(
            args,
            now,
            price_categories=[args.price_category],
            food_types=args.food_types,
            dietary_types=args.dietary_types,
            perks=args.perks,
        )

    async def find_nearby_by_establishment_type(self, args, now: datetime) -> ExecutionResult:
        return await self._filtered_nearby(args, now, establishment_types=args.establishment_types)

    async def find_nearby_with_virtual_tour(self, args, now: datetime) -> ExecutionResult:
        return await self._filtered_nearby(
            args,
            now,
            predicate=lambda r: bool(r.virtual_tour_url),
            food_types=args.food_types,
            perks=args.perks,
        )

    async def unknown(self, args, now: datetime) -> ExecutionResult:
        return ExecutionResult(kind="answer")
