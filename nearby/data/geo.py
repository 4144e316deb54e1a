"""
Haversine distance for geographic nearby queries.
"""
import math
from typing import Any, Mapping

from nearby.errors import DataError

# Earth radius in meters (mean radius, same constant the geohash bounds assume)
EARTH_RADIUS_M = 6_371_000.0

LAT_MIN, LAT_MAX = -90.0, 90.0
LNG_MIN, LNG_MAX = -180.0, 180.0


def haversine_distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Return great-circle distance between two points in meters.
    Arguments in degrees.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def _as_coordinate(value: Any) -> float | None:
    # bool is an int subclass; a flag stored in a coordinate field is not a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def entity_coordinates(doc: Mapping[str, Any]) -> tuple[float, float]:
    """Return (latitude, longitude) of a stored entity or raise DataError."""
    entity_id = doc.get("id")
    lat = _as_coordinate(doc.get("latitude"))
    lng = _as_coordinate(doc.get("longitude"))
    if lat is None or lng is None:
        raise DataError(entity_id, "missing or non-numeric coordinates")
    if not (LAT_MIN <= lat <= LAT_MAX) or not (LNG_MIN <= lng <= LNG_MAX):
        raise DataError(entity_id, f"coordinates out of range ({lat}, {lng})")
    return lat, lng


def refine(center: tuple[float, float], doc: Mapping[str, Any]) -> float:
    """
    Exact distance in meters from center to the entity's stored coordinates.
    Never uses the geohash: cell corners can sit well outside the search radius.
    """
    lat, lng = entity_coordinates(doc)
    return haversine_distance_m(center[0], center[1], lat, lng)
