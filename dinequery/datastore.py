"""Data store interface and an in-memory implementation."""

from typing import Iterable, Literal, Protocol

import structlog

from dinequery.models.domain import BoundingBox, MenuItem, Restaurant, TaxonomyTables
from dinequery.resolvers.taxonomy import similarity
from dinequery.resolvers.text import normalize_text

logger = structlog.get_logger()

NAME_MATCH_THRESHOLD = 0.8

MenuType = Literal["food", "drink", "all"]


class DataStore(Protocol):
    """Lookups the engine needs from restaurant persistence."""

    async def find_restaurant(self, name: str, city: str | None = None) -> Restaurant | None:
        """Restaurant whose name approximately matches, optionally within a city."""
        ...

    async def restaurants_in_bbox(
        self, bbox: BoundingBox, claimed_only: bool = True
    ) -> list[Restaurant]:
        """Restaurants inside a bounding box (pre-filter only)."""
        ...

    async def search_items(
        self,
        terms: list[str],
        restaurant_id: int | None = None,
        bbox: BoundingBox | None = None,
        limit: int = 200,
    ) -> list[MenuItem]:
        """Food and drink items whose name contains any term."""
        ...

    async def get_restaurants(self, ids: Iterable[int]) -> list[Restaurant]:
        ...

    async def get_menu(
        self, restaurant_id: int, menu_type: MenuType = "all", limit: int = 300
    ) -> list[MenuItem]:
        ...

    async def taxonomy_tables(self) -> TaxonomyTables:
        ...


class InMemoryDataStore:
    """DataStore over plain lists; used in tests and local runs."""

    def __init__(
        self,
        restaurants: Iterable[Restaurant] = (),
        items: Iterable[MenuItem] = (),
        taxonomy: TaxonomyTables | None = None,
    ):
        self.restaurants: dict[int, Restaurant] = {r.id: r for r in restaurants}
        self.items: list[MenuItem] = list(items)
        self.taxonomy = taxonomy or TaxonomyTables()

    async def find_restaurant(self, name: str, city: str | None = None) -> Restaurant | None:
        wanted = normalize_text(name)
        if not wanted:
            return None
        place = normalize_text(city) if city else None

        best: tuple[float, Restaurant] | None = None
        for restaurant in self.restaurants.values():
            if place and place not in normalize_text(restaurant.place):
                continue
            candidate = normalize_text(restaurant.name)
            if candidate == wanted or normalize_text(restaurant.slug) == wanted:
                score = 1.0
            else:
                score = max(similarity(candidate, wanted), similarity(wanted, candidate))
            if score >= NAME_MATCH_THRESHOLD and (best is None or score > best[0]):
                best = (score, restaurant)

        if best is None:
            logger.debug("restaurant_not_matched", name=name, city=city)
            return None
        return best[1]

    async def restaurants_in_bbox(
        self, bbox: BoundingBox, claimed_only: bool = True
    ) -> list[Restaurant]:
        return [
            r
            for r in self.restaurants.values()
            if r.has_coordinates
            and bbox.contains(r.latitude, r.longitude)
            and (r.is_claimed or not claimed_only)
        ]

    async def search_items(
        self,
        terms: list[str],
        restaurant_id: int | None = None,
        bbox: BoundingBox | None = None,
        limit: int = 200,
    ) -> list[MenuItem]:
        needles = [normalize_text(t) for t in terms if t]
        if not needles:
            return []

        found = []
        for item in self.items:
            if restaurant_id is not None and item.restaurant_id != restaurant_id:
                continue
            if bbox is not None:
                owner = self.restaurants.get(item.restaurant_id)
                if owner is None or not owner.is_claimed or not owner.has_coordinates:
                    continue
                if not bbox.contains(owner.latitude, owner.longitude):
                    continue
            names = normalize_text(f"{item.name_hr} {item.name_en or ''}")
            if any(n in names for n in needles):
                found.append(item)
                if len(found) >= limit:
                    break
        return found

    async def get_restaurants(self, ids: Iterable[int]) -> list[Restaurant]:
        return [self.restaurants[i] for i in ids if i in self.restaurants]

    async def get_menu(
        self, restaurant_id: int, menu_type: MenuType = "all", limit: int = 300
    ) -> list[MenuItem]:
        menu = [
            item
            for item in self.items
            if item.restaurant_id == restaurant_id and (menu_type == "all" or item.kind == menu_type)
        ]
        return menu[:limit]

    async def taxonomy_tables(self) -> TaxonomyTables:
        return self.taxonomy
