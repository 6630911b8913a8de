"""Tool registry: one typed argument model per intent."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from dinequery.errors import UnknownToolError

IntentName = Literal[
    "check_item_in_restaurant",
    "get_restaurant_info",
    "get_restaurant_menu",
    "find_by_item_and_perk_nearby",
    "find_items_nearby",
    "find_perk_nearby",
    "find_restaurant_by_name_city",
    "find_open_nearby_with_filters",
    "is_restaurant_open",
    "can_i_reserve_restaurant",
    "find_nearby_by_price_and_types",
    "find_nearby_by_establishment_type",
    "find_nearby_with_virtual_tour",
    "unknown",
]


class ToolArgs(BaseModel):
    """Base for validated tool arguments. Instances are immutable."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)


class RestaurantScopedArgs(ToolArgs):
    restaurant_name: str = Field(min_length=1, description="Restaurant name as the user wrote it")
    city: str | None = Field(default=None, description="City, if the user named one")


class NearbyArgs(ToolArgs):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    radius_km: float | None = Field(default=None, gt=0, description="Search radius in km")
    city: str | None = Field(
        default=None, description="City or neighborhood to search around instead of the user"
    )
    # filled from the whole message after routing, never by the oracle
    taxonomy_ids: dict[str, list[int]] | None = None


# fields the oracle is not offered
INTERNAL_FIELDS = frozenset({"taxonomy_ids"})


class CheckItemInRestaurantArgs(RestaurantScopedArgs):
    item_name: str = Field(min_length=1, description="Dish or drink to look for")


class GetRestaurantInfoArgs(RestaurantScopedArgs):
    pass


class GetRestaurantMenuArgs(RestaurantScopedArgs):
    menu_type: Literal["food", "drink", "all"] = "all"
    limit: int | None = Field(default=None, ge=1, le=500)


class IsRestaurantOpenArgs(RestaurantScopedArgs):
    at: str | None = Field(
        default=None, description="Time reference such as 'sutra u 18:00' or 'petkom'"
    )


class CanIReserveRestaurantArgs(RestaurantScopedArgs):
    pass


class FindRestaurantByNameCityArgs(ToolArgs):
    name: str = Field(min_length=1)
    city: str | None = None


class FindItemsNearbyArgs(NearbyArgs):
    item_name: str = Field(min_length=1)


class FindPerkNearbyArgs(NearbyArgs):
    perk_name: str = Field(min_length=1, description="Amenity such as terrace or high chair")


class FindByItemAndPerkNearbyArgs(NearbyArgs):
    item_name: str = Field(min_length=1)
    perk_name: str = Field(min_length=1)


class FindOpenNearbyWithFiltersArgs(NearbyArgs):
    at: str | None = None
    food_types: list[str] = Field(default_factory=list)
    dietary_types: list[str] = Field(default_factory=list)
    meal_types: list[str] = Field(default_factory=list)
    perks: list[str] = Field(default_factory=list)
    price_category: str | None = None
    establishment_types: list[str] = Field(default_factory=list)


class FindNearbyByPriceAndTypesArgs(NearbyArgs):
    price_category: str = Field(min_length=1, description="cheap, moderate or expensive")
    food_types: list[str] = Field(default_factory=list)
    dietary_types: list[str] = Field(default_factory=list)
    perks: list[str] = Field(default_factory=list)


class FindNearbyByEstablishmentTypeArgs(NearbyArgs):
    establishment_types: list[str] = Field(min_length=1)


class FindNearbyWithVirtualTourArgs(NearbyArgs):
    food_types: list[str] = Field(default_factory=list)
    perks: list[str] = Field(default_factory=list)


class UnknownArgs(ToolArgs):
    pass


class ToolSpec(BaseModel):
    """A registry entry: intent name, argument model and description for the oracle."""

    model_config = ConfigDict(frozen=True)

    name: IntentName
    args_model: type[ToolArgs]
    description: str


TOOL_REGISTRY: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            name="check_item_in_restaurant",
            args_model=CheckItemInRestaurantArgs,
            description="Check whether a named restaurant serves a specific dish or drink.",
        ),
        ToolSpec(
            name="get_restaurant_info",
            args_model=GetRestaurantInfoArgs,
            description="Return contact details, address and hours for a named restaurant.",
        ),
        ToolSpec(
            name="get_restaurant_menu",
            args_model=GetRestaurantMenuArgs,
            description="Return the food and/or drink menu of a named restaurant.",
        ),
        ToolSpec(
            name="find_by_item_and_perk_nearby",
            args_model=FindByItemAndPerkNearbyArgs,
            description="Find nearby restaurants that serve an item and offer a perk.",
        ),
        ToolSpec(
            name="find_items_nearby",
            args_model=FindItemsNearbyArgs,
            description="Find nearby restaurants serving a dish or drink.",
        ),
        ToolSpec(
            name="find_perk_nearby",
            args_model=FindPerkNearbyArgs,
            description="Find nearby restaurants offering an amenity (terrace, parking, high chair...).",
        ),
        ToolSpec(
            name="find_restaurant_by_name_city",
            args_model=FindRestaurantByNameCityArgs,
            description="Look up a restaurant by name, optionally within a city.",
        ),
        ToolSpec(
            name="find_open_nearby_with_filters",
            args_model=FindOpenNearbyWithFiltersArgs,
            description="Find nearby restaurants open at a given time, with optional filters.",
        ),
        ToolSpec(
            name="is_restaurant_open",
            args_model=IsRestaurantOpenArgs,
            description="Tell whether a named restaurant is open now or at a given time.",
        ),
        ToolSpec(
            name="can_i_reserve_restaurant",
            args_model=CanIReserveRestaurantArgs,
            description="Tell whether a named restaurant accepts reservations.",
        ),
        ToolSpec(
            name="find_nearby_by_price_and_types",
            args_model=FindNearbyByPriceAndTypesArgs,
            description="Find nearby restaurants in a price category, optionally by cuisine, diet or perk.",
        ),
        ToolSpec(
            name="find_nearby_by_establishment_type",
            args_model=FindNearbyByEstablishmentTypeArgs,
            description="Find nearby establishments of a type (bar, pizzeria, bistro...).",
        ),
        ToolSpec(
            name="find_nearby_with_virtual_tour",
            args_model=FindNearbyWithVirtualTourArgs,
            description="Find nearby restaurants that offer a virtual tour.",
        ),
        ToolSpec(
            name="unknown",
            args_model=UnknownArgs,
            description="Use when the question is not about restaurants, menus or amenities.",
        ),
    )
}

RESTAURANT_SCOPED_INTENTS = frozenset(
    name
    for name, spec in TOOL_REGISTRY.items()
    if issubclass(spec.args_model, (RestaurantScopedArgs, FindRestaurantByNameCityArgs))
)
NEARBY_INTENTS = frozenset(
    name for name, spec in TOOL_REGISTRY.items() if issubclass(spec.args_model, NearbyArgs)
)


class ResolvedIntent(BaseModel):
    """The operation chosen for a turn plus its validated arguments."""

    model_config = ConfigDict(frozen=True)

    name: IntentName
    args: SerializeAsAny[ToolArgs]

    @property
    def params(self) -> dict[str, Any]:
        """Arguments as a plain dict without unset optionals."""
        return self.args.model_dump(exclude_none=True)

    @property
    def is_nearby(self) -> bool:
        return self.name in NEARBY_INTENTS


def parse_intent(name: str, raw_args: dict[str, Any] | None) -> ResolvedIntent:
    """Validate untyped tool arguments into a ResolvedIntent.

    Args:
        name: Tool name chosen by the oracle or the heuristic parser
        raw_args: Untyped argument mapping

    Returns:
        ResolvedIntent carrying the registered argument model

    Raises:
        UnknownToolError: If the name is not registered
        pydantic.ValidationError: If the arguments do not fit the model
    """
    spec = TOOL_REGISTRY.get(name)
    if spec is None:
        raise UnknownToolError(name)
    args = spec.args_model.model_validate(raw_args or {})
    return ResolvedIntent(name=spec.name, args=args)
