"""Tests for IntentExecutor."""

import math
from unittest.mock import AsyncMock

import pytest

from dinequery.datastore import InMemoryDataStore
from dinequery.models.api import OutcomeCode
from dinequery.models.domain import MenuItem, Restaurant
from dinequery.models.intents import parse_intent
from dinequery.pipeline.handlers import IntentExecutor
from dinequery.resolvers.geo import KM_PER_DEGREE, bounding_box, haversine_km

LAT, LON = 45.815, 15.9819


def _near(**args):
    return {"latitude": LAT, "longitude": LON, "radius_km": 3, **args}


@pytest.fixture
def executor(store):
    """Executor over the fixture store."""
    return IntentExecutor(store, max_radius_km=10, tz="Europe/Zagreb")


async def _run(executor, now, name, /, **args):
    return await executor.execute(parse_intent(name, args), now)


class TestRestaurantIntents:
    """Tests for intents about one named restaurant."""

    @pytest.mark.asyncio
    async def test_item_found(self, executor, now):
        """Test that an inflected dish is found on the menu."""
        result = await _run(executor, now, "check_item_in_restaurant", restaurant_name="Marabu", item_name="lazanje")

        assert result.code is None
        assert result.kind == "menu"
        assert [item.id for item in result.items] == [5]
        assert result.facts == {"item_name": "lazanje", "found": True}

    @pytest.mark.asyncio
    async def test_item_missing(self, executor, now):
        """Test a dish the restaurant does not serve."""
        result = await _run(executor, now, "check_item_in_restaurant", restaurant_name="Marabu", item_name="sushi")

        assert result.code == OutcomeCode.NO_RESULTS.value
        assert result.restaurant.name == "Marabu"

    @pytest.mark.asyncio
    async def test_unclaimed_restaurant(self, executor, now):
        """Test that a non-partner's menu is not searched."""
        result = await _run(executor, now, "check_item_in_restaurant", restaurant_name="Stara Kuća", item_name="lignje")

        assert result.code == OutcomeCode.NOT_PARTNER.value
        assert result.items == []

    @pytest.mark.asyncio
    async def test_restaurant_not_found(self, executor, now):
        """Test an unknown restaurant name."""
        result = await _run(executor, now, "get_restaurant_info", restaurant_name="Nepostojeći")

        assert result.kind == "error"
        assert result.code == OutcomeCode.RESTAURANT_NOT_FOUND.value

    @pytest.mark.asyncio
    async def test_info_includes_open_state(self, executor, now):
        """Test that info carries the current open state."""
        result = await _run(executor, now, "get_restaurant_info", restaurant_name="Konoba Lignja")

        assert result.kind == "restaurant_info"
        assert result.open_state.state == "open"
        assert result.at == now

    @pytest.mark.asyncio
    async def test_open_at_future_time(self, executor, now):
        """Test opening state for a parsed time reference."""
        result = await _run(executor, now, "is_restaurant_open", restaurant_name="Marabu", at="sutra u 07:00")

        assert result.at.day == 4
        assert result.at.hour == 7
        assert result.open_state.state == "closed"
        assert result.open_state.opens_at == "08:00"

    @pytest.mark.asyncio
    async def test_reservation(self, executor, now):
        """Test the reservation flag."""
        result = await _run(executor, now, "can_i_reserve_restaurant", restaurant_name="Marabu")

        assert result.facts == {"reservation_enabled": True}

    @pytest.mark.asyncio
    async def test_drink_menu(self, executor, now):
        """Test filtering the menu by type."""
        result = await _run(executor, now, "get_restaurant_menu", restaurant_name="Marabu", menu_type="drink")

        assert [item.name_hr for item in result.items] == ["Pivo"]

    @pytest.mark.asyncio
    async def test_lookup_by_name_and_city(self, executor, now):
        """Test a partial name within a city."""
        result = await _run(executor, now, "find_restaurant_by_name_city", name="Napoli", city="Zagreb")

        assert result.restaurant.id == 3

    @pytest.mark.asyncio
    async def test_lookup_retries_without_generic_words(self, restaurants):
        """Test that "Restoran Marabu" is retried as "Marabu"."""
        store = AsyncMock()
        store.find_restaurant = AsyncMock(side_effect=[None, restaurants[0]])
        executor = IntentExecutor(store, max_radius_km=10)

        restaurant = await executor.lookup_restaurant("Restoran Marabu", "Zagreb")

        assert restaurant.id == 1
        store.find_restaurant.assert_awaited_with("Marabu", "Zagreb")


class TestNearbyIntents:
    """Tests for nearby searches."""

    @pytest.mark.asyncio
    async def test_items_sorted_by_distance(self, executor, now):
        """Test that partners serving the dish are listed nearest first."""
        result = await _run(executor, now, "find_items_nearby", **_near(item_name="lignje"))

        assert result.code is None
        assert [c.restaurant.id for c in result.candidates] == [1, 2]
        assert result.candidates[0].distance_km < result.candidates[1].distance_km
        assert [item.id for item in result.candidates[1].items] == [2]
        assert result.facts["radius_km"] == 3
        assert result.facts["count"] == 2

    @pytest.mark.asyncio
    async def test_small_radius(self, executor, now):
        """Test that a small radius drops restaurants a few hundred meters away."""
        result = await _run(executor, now, "find_items_nearby", **_near(item_name="lignje", radius_km=0.5))

        assert [c.restaurant.id for c in result.candidates] == [1]

    @pytest.mark.asyncio
    async def test_box_corner_outside_circle(self, restaurants, menu_items, taxonomy_tables, now):
        """Test that a restaurant inside the bounding box but outside the circle is excluded."""
        radius = 0.5
        d_lat = radius / KM_PER_DEGREE
        d_lon = radius / (KM_PER_DEGREE * math.cos(math.radians(LAT)))
        corner_lat, corner_lon = LAT + 0.9 * d_lat, LON + 0.9 * d_lon
        corner = Restaurant(
            id=6, name="Kutni Bistro", place="Zagreb", latitude=corner_lat, longitude=corner_lon, is_claimed=True
        )
        store = InMemoryDataStore(
            [*restaurants, corner],
            [*menu_items, MenuItem(id=9, restaurant_id=6, name_hr="Lignje", name_en="Squid", price=11.0)],
            taxonomy_tables,
        )
        executor = IntentExecutor(store, max_radius_km=10, tz="Europe/Zagreb")

        result = await _run(executor, now, "find_items_nearby", **_near(item_name="lignje", radius_km=radius))

        assert bounding_box(LAT, LON, radius).contains(corner_lat, corner_lon)
        assert haversine_km(LAT, LON, corner_lat, corner_lon) > radius
        assert [c.restaurant.id for c in result.candidates] == [1]

    @pytest.mark.asyncio
    async def test_no_results(self, executor, now):
        """Test that an unserved dish gives NO_RESULTS with the radius."""
        result = await _run(executor, now, "find_items_nearby", **_near(item_name="sushi"))

        assert result.code == OutcomeCode.NO_RESULTS.value
        assert result.facts["radius_km"] == 3

    @pytest.mark.asyncio
    async def test_message_filters_narrow_item_search(self, executor, now):
        """Test that a perk mentioned alongside the dish narrows the results."""
        result = await _run(
            executor, now, "find_items_nearby", **_near(item_name="lignje", taxonomy_ids={"perks": [2]})
        )

        assert [c.restaurant.id for c in result.candidates] == [1]

    @pytest.mark.asyncio
    async def test_message_filters_without_match(self, executor, now):
        """Test that an unmet dietary filter gives NO_RESULTS."""
        result = await _run(
            executor, now, "find_items_nearby", **_near(item_name="pizza", taxonomy_ids={"dietary_types": [1]})
        )

        assert result.code == OutcomeCode.NO_RESULTS.value

    @pytest.mark.asyncio
    async def test_missing_location(self, executor, now):
        """Test that a nearby search needs coordinates or a city."""
        result = await _run(executor, now, "find_items_nearby", item_name="lignje")

        assert result.code == OutcomeCode.MISSING_LOCATION.value

    @pytest.mark.asyncio
    async def test_city_instead_of_coordinates(self, executor, now):
        """Test searching around a named city."""
        result = await _run(executor, now, "find_perk_nearby", perk_name="terasa", city="Zagreb", radius_km=3)

        assert [c.restaurant.id for c in result.candidates] == [1, 2]
        assert result.facts["city"] == "Zagreb"
        assert result.facts["perk_name"] == "terasa"

    @pytest.mark.asyncio
    async def test_unknown_perk(self, executor, now):
        """Test that a perk outside the taxonomy gives NO_RESULTS."""
        result = await _run(executor, now, "find_perk_nearby", **_near(perk_name="wifi"))

        assert result.code == OutcomeCode.NO_RESULTS.value
        assert result.facts["unresolved"] == "perks"

    @pytest.mark.asyncio
    async def test_item_and_perk(self, executor, now):
        """Test that both the dish and the perk must match."""
        result = await _run(
            executor, now, "find_by_item_and_perk_nearby",
            **_near(item_name="lignje", perk_name="stolica za djecu"),
        )

        assert [c.restaurant.id for c in result.candidates] == [1]

    @pytest.mark.asyncio
    async def test_open_late(self, executor, now):
        """Test that only restaurants open at the requested time are kept."""
        result = await _run(executor, now, "find_open_nearby_with_filters", **_near(at="23:30"))

        assert [c.restaurant.id for c in result.candidates] == [3]
        assert result.candidates[0].open_state.closes_at == "01:00"
        assert result.at.hour == 23

    @pytest.mark.asyncio
    async def test_price_and_food_type(self, executor, now):
        """Test price category combined with cuisine."""
        result = await _run(
            executor, now, "find_nearby_by_price_and_types",
            **_near(price_category="cheap", food_types=["pizza"]),
        )

        assert [c.restaurant.id for c in result.candidates] == [3]

    @pytest.mark.asyncio
    async def test_establishment_type(self, executor, now):
        """Test filtering by establishment type."""
        result = await _run(
            executor, now, "find_nearby_by_establishment_type", **_near(establishment_types=["pizzeria"])
        )

        assert [c.restaurant.id for c in result.candidates] == [3]

    @pytest.mark.asyncio
    async def test_virtual_tour(self, executor, now):
        """Test that only restaurants with a tour are listed."""
        result = await _run(executor, now, "find_nearby_with_virtual_tour", **_near())

        assert [c.restaurant.id for c in result.candidates] == [3]

    @pytest.mark.asyncio
    async def test_unknown_intent(self, executor, now):
        """Test that an out-of-scope question is a plain answer."""
        result = await _run(executor, now, "unknown")

        assert result.kind == "answer"
        assert result.code is None
