"""Shared fixtures: fake clock, taxonomy tables, in-memory store, fake oracle."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from dinequery.datastore import InMemoryDataStore
from dinequery.hours import week_schedule
from dinequery.models.domain import MenuItem, Restaurant, TaxonomyRow, TaxonomyTables
from dinequery.routing.oracle import ToolSelection

ZAGREB = ZoneInfo("Europe/Zagreb")
ZAGREB_CENTER = (45.815, 15.9819)

# Monday, 3 March 2025, 14:00 local
MONDAY_AFTERNOON = datetime(2025, 3, 3, 14, 0, tzinfo=ZAGREB)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeOracle:
    """ToolOracle double returning queued selections or raising queued errors."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    async def select_tool(self, system: str, user_text: str) -> ToolSelection:
        self.calls.append((system, user_text))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _rows(*pairs):
    return [TaxonomyRow(id=i, name_en=en, name_hr=hr) for i, (en, hr) in enumerate(pairs, start=1)]


@pytest.fixture
def fake_clock():
    """Controllable monotonic clock."""
    return FakeClock()


@pytest.fixture
def taxonomy_tables():
    """Small taxonomy export covering every dimension."""
    return TaxonomyTables(
        food_types=_rows(
            ("Italian cuisine", "Talijanska kuhinja"),
            ("Pizza", "Pizza"),
            ("Seafood", "Morski plodovi"),
        ),
        dietary_types=_rows(("Vegan", "Vegansko"), ("Gluten free", "Bez glutena")),
        perks=_rows(
            ("Outdoor seating", "Terasa"),
            ("High chairs available", "Stolica za djecu"),
            ("Parking available", "Parking"),
        ),
        establishment_types=_rows(("Bar", "Bar"), ("Pizzeria", "Pizzerija")),
        price_categories=_rows(("Cheap", "Jeftino"), ("Moderate", "Srednje"), ("Expensive", "Skupo")),
        meal_types=_rows(("Breakfast", "Doručak"), ("Lunch", "Ručak")),
    )


@pytest.fixture
def restaurants():
    """Restaurants around Zagreb's center, plus one unclaimed and one far away."""
    every_day = range(7)
    return [
        Restaurant(
            id=1,
            name="Marabu",
            place="Zagreb",
            address="Ilica 1",
            latitude=45.8155,
            longitude=15.9820,
            is_claimed=True,
            reservation_enabled=True,
            phone="+385 1 111 111",
            price_category_id=2,
            food_types=[1],
            establishment_perks=[1, 2],
            opening_hours=week_schedule(every_day, "0800", "2200"),
        ),
        Restaurant(
            id=2,
            name="Konoba Lignja",
            place="Zagreb",
            latitude=45.8200,
            longitude=15.9900,
            is_claimed=True,
            price_category_id=2,
            food_types=[3],
            establishment_perks=[1],
            opening_hours=week_schedule(every_day, "1200", "2300"),
        ),
        Restaurant(
            id=3,
            name="Pizzeria Napoli",
            place="Zagreb",
            latitude=45.8050,
            longitude=15.9750,
            is_claimed=True,
            price_category_id=1,
            food_types=[2],
            establishment_types=[2],
            establishment_perks=[3],
            virtual_tour_url="https://tours.example/napoli",
            opening_hours=week_schedule(every_day, "1100", "0100"),
        ),
        Restaurant(
            id=4,
            name="Stara Kuća",
            place="Zagreb",
            latitude=45.8160,
            longitude=15.9830,
            is_claimed=False,
        ),
        Restaurant(
            id=5,
            name="Daleki Bistro",
            place="Zagreb",
            latitude=45.9000,
            longitude=16.1000,
            is_claimed=True,
            establishment_perks=[1],
        ),
    ]


@pytest.fixture
def menu_items():
    """Menu items for the fixture restaurants."""
    return [
        MenuItem(id=1, restaurant_id=1, name_hr="Lignje na žaru", name_en="Grilled squid", price=12.5),
        MenuItem(id=2, restaurant_id=2, name_hr="Pržene lignje", name_en="Fried squid", price=11.0),
        MenuItem(id=3, restaurant_id=2, name_hr="Crni rižot", name_en="Black risotto", price=14.0),
        MenuItem(id=4, restaurant_id=3, name_hr="Pizza Margherita", name_en="Pizza Margherita", price=9.0),
        MenuItem(id=5, restaurant_id=1, name_hr="Lazanje", name_en="Lasagna", price=10.0),
        MenuItem(id=6, restaurant_id=5, name_hr="Lignje", name_en="Squid", price=10.0),
        MenuItem(id=7, restaurant_id=1, name_hr="Pivo", name_en="Beer", price=3.5, kind="drink"),
        MenuItem(id=8, restaurant_id=4, name_hr="Lignje", name_en="Squid", price=9.0),
    ]


@pytest.fixture
def store(restaurants, menu_items, taxonomy_tables):
    """In-memory store loaded with the fixture data."""
    return InMemoryDataStore(restaurants, menu_items, taxonomy_tables)


@pytest.fixture
def empty_store(taxonomy_tables):
    """Store with taxonomy tables but no restaurants."""
    return InMemoryDataStore(taxonomy=taxonomy_tables)


@pytest.fixture
def now():
    """Fixed turn timestamp: Monday 14:00 in Zagreb."""
    return MONDAY_AFTERNOON


@pytest.fixture
def make_oracle():
    """Factory for FakeOracle instances."""
    return FakeOracle
