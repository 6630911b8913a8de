"""City/neighborhood lookup, bounding boxes and great-circle distance."""

import math

import structlog
from pydantic import BaseModel

from dinequery.config import get_settings
from dinequery.models.domain import BoundingBox
from dinequery.resolvers.text import normalize_text

logger = structlog.get_logger()
settings = get_settings()

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0
MIN_RADIUS_KM = 0.1


class PlaceMatch(BaseModel):
    """A resolved city or neighborhood center."""

    key: str
    name: str
    latitude: float
    longitude: float
    radius_km: float | None = None
    parent: str | None = None


# name, lat, lon
CITIES: list[tuple[str, float, float]] = [
    ("Zagreb", 45.815, 15.9819),
    ("Split", 43.5081, 16.4402),
    ("Rijeka", 45.327, 14.4422),
    ("Osijek", 45.5511, 18.6938),
    ("Zadar", 44.1194, 15.2314),
    ("Pula", 44.8666, 13.8496),
    ("Slavonski Brod", 45.16, 18.0158),
    ("Karlovac", 45.4869, 15.5478),
    ("Varaždin", 46.3044, 16.3377),
    ("Šibenik", 43.7272, 15.8952),
    ("Sisak", 45.4864, 16.3755),
    ("Dubrovnik", 42.6507, 18.0944),
    ("Vukovar", 45.3511, 18.9994),
    ("Bjelovar", 45.8986, 16.8419),
    ("Koprivnica", 46.1631, 16.8275),
    ("Virovitica", 45.8322, 17.3847),
    ("Požega", 45.34, 17.6856),
    ("Vinkovci", 45.2883, 18.8047),
]

# name, parent city, lat, lon, implied radius
NEIGHBORHOODS: list[tuple[str, str, float, float, float]] = [
    ("Knežija", "Zagreb", 45.815, 15.9819, 3.0),
    ("Trnje", "Zagreb", 45.795, 15.99, 3.0),
    ("Dubrava", "Zagreb", 45.8264, 16.0469, 3.0),
    ("Novi Zagreb", "Zagreb", 45.78, 15.95, 3.0),
    ("Centar", "Zagreb", 45.8131, 15.9772, 2.0),
    ("Maksimir", "Zagreb", 45.8211, 16.0169, 3.0),
    ("Špansko", "Zagreb", 45.7906, 15.9297, 3.0),
    ("Travno", "Zagreb", 45.7728, 16.0194, 3.0),
    ("Sopot", "Zagreb", 45.7933, 16.0389, 3.0),
    ("Meje", "Split", 43.515, 16.445, 2.0),
    ("Trstenik", "Split", 43.5, 16.47, 2.0),
    ("Bačvice", "Split", 43.5047, 16.4497, 2.0),
]

# lookup keys are diacritics-free and underscore-joined
_PLACES: dict[str, PlaceMatch] = {}
for _name, _lat, _lon in CITIES:
    _key = normalize_text(_name).replace(" ", "_")
    _PLACES[_key] = PlaceMatch(key=_key, name=_name, latitude=_lat, longitude=_lon)
for _name, _parent, _lat, _lon, _radius in NEIGHBORHOODS:
    _key = normalize_text(_name).replace(" ", "_")
    _PLACES[_key] = PlaceMatch(
        key=_key, name=_name, latitude=_lat, longitude=_lon, radius_km=_radius, parent=_parent
    )

# Croatian locative forms seen after "u"/"na" ("u Zagrebu", "na Trnju")
_INFLECTIONS = ("u", "i", "e", "a", "om")


def place_key(name: str) -> str:
    return normalize_text(name).replace(" ", "_").replace("-", "_")


def resolve_place(name: str | None) -> PlaceMatch | None:
    """Resolve a city or neighborhood name.

    Exact key first, then an inflection-stripped key, then containment.
    Unknown names return None.
    """
    key = place_key(name or "")
    if len(key) < 3:
        return None

    match = _PLACES.get(key)
    if match is not None:
        return match

    for suffix in _INFLECTIONS:
        if key.endswith(suffix) and len(key) - len(suffix) >= 3:
            stem = key[: -len(suffix)]
            for candidate_key, candidate in _PLACES.items():
                if candidate_key == stem or (
                    candidate_key.startswith(stem) and len(candidate_key) - len(stem) <= 1
                ):
                    return candidate

    for candidate_key, candidate in _PLACES.items():
        if len(key) >= 4 and (key in candidate_key or candidate_key in key):
            return candidate

    logger.debug("place_not_found", name=name)
    return None


def clamp_radius(radius_km: float | None, max_radius_km: float | None = None) -> float:
    """Clamp a requested radius into [0.1, max]; invalid input falls back to the default."""
    max_radius = max_radius_km if max_radius_km is not None else settings.max_radius_km
    if radius_km is None or not math.isfinite(radius_km) or radius_km <= 0:
        radius_km = settings.default_radius_km
    return min(max(radius_km, MIN_RADIUS_KM), max_radius)


def bounding_box(latitude: float, longitude: float, radius_km: float) -> BoundingBox:
    """Axis-aligned box around a point; a pre-filter only, never the final boundary."""
    d_lat = radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(latitude))
    # near the poles the box covers every longitude
    d_lon = 180.0 if cos_lat < 1e-6 else radius_km / (KM_PER_DEGREE * cos_lat)
    return BoundingBox(
        lat_min=latitude - d_lat,
        lat_max=latitude + d_lat,
        lon_min=longitude - d_lon,
        lon_max=longitude + d_lon,
    )


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def resolve_center(
    city: str | None,
    latitude: float | None,
    longitude: float | None,
    radius_km: float | None,
    max_radius_km: float | None = None,
) -> tuple[float | None, float | None, float]:
    """Pick the search center and radius.

    A known place wins over caller coordinates and a neighborhood's own
    radius overrides the requested one. Unknown places fall back to the
    caller's coordinates.

    Returns:
        Tuple of (latitude, longitude, clamped radius)
    """
    place = resolve_place(city) if city else None
    if place is not None:
        radius = place.radius_km if place.radius_km is not None else radius_km
        return place.latitude, place.longitude, clamp_radius(radius, max_radius_km)
    if city:
        logger.info("city_unresolved_using_coordinates", city=city)
    return latitude, longitude, clamp_radius(radius_km, max_radius_km)
