"""Domain records exchanged with the data store."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TaxonomyDimension = Literal[
    "food_types",
    "dietary_types",
    "perks",
    "establishment_types",
    "price_categories",
    "meal_types",
]

TAXONOMY_DIMENSIONS: tuple[TaxonomyDimension, ...] = (
    "food_types",
    "dietary_types",
    "perks",
    "establishment_types",
    "price_categories",
    "meal_types",
)


class TaxonomyRow(BaseModel):
    """A canonical taxonomy entry with names in both languages."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name_hr: str = Field(alias="nameHr")
    name_en: str = Field(alias="nameEn")


class TaxonomyTables(BaseModel):
    """Export of every taxonomy dimension."""

    model_config = ConfigDict(populate_by_name=True)

    food_types: list[TaxonomyRow] = Field(default_factory=list, alias="foodTypes")
    dietary_types: list[TaxonomyRow] = Field(default_factory=list, alias="dietaryTypes")
    perks: list[TaxonomyRow] = Field(default_factory=list, alias="establishmentPerks")
    establishment_types: list[TaxonomyRow] = Field(
        default_factory=list, alias="establishmentTypes"
    )
    price_categories: list[TaxonomyRow] = Field(
        default_factory=list, alias="priceCategories"
    )
    meal_types: list[TaxonomyRow] = Field(default_factory=list, alias="mealTypes")

    def rows(self, dimension: TaxonomyDimension) -> list[TaxonomyRow]:
        return getattr(self, dimension)


class OpeningTime(BaseModel):
    """Day index (0 = Monday) and an HHMM time string."""

    day: int = Field(ge=0, le=6)
    time: str | None = None


class OpeningPeriod(BaseModel):
    """One open/close pair; ``shifts`` holds additional pairs for the same entry."""

    open: OpeningTime | None = None
    close: OpeningTime | None = None
    shifts: list["OpeningPeriod"] = Field(default_factory=list)


class OpeningHours(BaseModel):
    """Weekly recurring schedule."""

    periods: list[OpeningPeriod] = Field(default_factory=list)


class WorkingDayOverride(BaseModel):
    """Schedule for one calendar date that replaces the weekly entry."""

    model_config = ConfigDict(populate_by_name=True)

    open: str | None = None
    close: str | None = None
    close_day_offset: int = Field(default=0, ge=0, le=1, alias="closeDayOffset")
    closed: bool = False


class OpenState(BaseModel):
    """Open/closed projection at an instant."""

    state: Literal["open", "closed", "undefined"]
    opens_at: str | None = None
    closes_at: str | None = None


class BoundingBox(BaseModel):
    """Axis-aligned lat/lon rectangle used as a geo pre-filter."""

    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.lat_min <= latitude <= self.lat_max
            and self.lon_min <= longitude <= self.lon_max
        )


class Restaurant(BaseModel):
    """Restaurant record as decorated by the data store."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    slug: str | None = None
    place: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    is_claimed: bool = Field(default=False, alias="isClaimed")
    reservation_enabled: bool = Field(default=False, alias="reservationEnabled")
    phone: str | None = None
    email: str | None = None
    website_url: str | None = Field(default=None, alias="websiteUrl")
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl")
    virtual_tour_url: str | None = Field(default=None, alias="virtualTourUrl")
    price_category_id: int | None = Field(default=None, alias="priceCategoryId")
    food_types: list[int] = Field(default_factory=list, alias="foodTypes")
    dietary_types: list[int] = Field(default_factory=list, alias="dietaryTypes")
    establishment_types: list[int] = Field(default_factory=list, alias="establishmentTypes")
    establishment_perks: list[int] = Field(default_factory=list, alias="establishmentPerks")
    meal_types: list[int] = Field(default_factory=list, alias="mealTypes")
    opening_hours: OpeningHours | None = Field(default=None, alias="openingHours")
    custom_working_days: dict[str, WorkingDayOverride] = Field(
        default_factory=dict, alias="customWorkingDays"
    )

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class MenuItem(BaseModel):
    """Food or drink item owned by a restaurant."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    restaurant_id: int = Field(alias="restaurantId")
    name_hr: str = Field(alias="nameHr")
    name_en: str | None = Field(default=None, alias="nameEn")
    price: float | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    kind: Literal["food", "drink"] = "food"

    def name(self, language: str = "hr") -> str:
        if language == "en" and self.name_en:
            return self.name_en
        return self.name_hr


class CandidateResult(BaseModel):
    """A restaurant decorated with distance, matched items and open state."""

    restaurant: Restaurant
    distance_km: float | None = None
    items: list[MenuItem] = Field(default_factory=list)
    open_state: OpenState | None = None
