"""Entity resolvers: taxonomy, geography and time."""

from dinequery.resolvers.geo import (
    bounding_box,
    clamp_radius,
    haversine_km,
    resolve_center,
    resolve_place,
)
from dinequery.resolvers.taxonomy import (
    TaxonomyFilters,
    TaxonomyResolver,
    expand_synonyms,
    extract_filters,
    matches,
    similarity,
)
from dinequery.resolvers.temporal import asks_closing_time, day_relation_label, parse_time_ref

__all__ = [
    "TaxonomyFilters",
    "TaxonomyResolver",
    "asks_closing_time",
    "bounding_box",
    "clamp_radius",
    "day_relation_label",
    "expand_synonyms",
    "extract_filters",
    "haversine_km",
    "matches",
    "parse_time_ref",
    "resolve_center",
    "resolve_place",
    "similarity",
]
