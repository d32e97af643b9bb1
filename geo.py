"""
Great-circle distance and position helpers.

Distances are returned in the unit of the Earth radius passed in. Every caller
picks the unit explicitly; the module never assumes one.
"""

import math
from typing import Any, Mapping, Optional, Tuple

# Earth's mean radius per distance unit
EARTH_RADIUS = {
    "km": 6371.0,
    "m": 6371000.0,
    "mi": 3958.8,
}

LatLng = Tuple[float, float]


def earth_radius(unit: str) -> float:
    """
    Get Earth's mean radius for a distance unit.

    Raises:
        ValueError: If the unit is not km, m or mi
    """
    try:
        return EARTH_RADIUS[unit]
    except KeyError:
        raise ValueError(f"Unknown distance unit: {unit}. Must be one of {', '.join(EARTH_RADIUS)}.")


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float, radius: float) -> float:
    """
    Calculate great-circle distance between two points using Haversine formula.

    Args:
        lat1, lon1: First point coordinates in decimal degrees
        lat2, lon2: Second point coordinates in decimal degrees
        radius: Earth's radius in the desired output unit (see EARTH_RADIUS)

    Returns:
        Distance in the unit of ``radius``
    """
    # Convert to radians
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    # Haversine formula
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return radius * c


def _coordinate(value: Any) -> Optional[float]:
    """Coerce a coordinate to float, rejecting booleans, NaN and non-numbers."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_location(text: Optional[str]) -> Optional[LatLng]:
    """
    Parse a "lat,lng" string such as "40.7128,-74.0060".

    Returns:
        (lat, lng) tuple, or None if the string is not a valid coordinate pair
    """
    if not text:
        return None
    parts = text.split(",")
    if len(parts) != 2:
        return None
    lat = _coordinate(parts[0].strip())
    lng = _coordinate(parts[1].strip())
    if lat is None or lng is None:
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return (lat, lng)


def entity_position(entity: Mapping[str, Any]) -> Optional[LatLng]:
    """
    Get an entity's position from its ``location`` object.

    Longitude is read from ``long``, falling back to ``lng`` and ``lon``.
    Returns None when the location is missing or not numeric.
    """
    location = entity.get("location")
    if not isinstance(location, Mapping):
        return None
    lat = _coordinate(location.get("lat"))
    raw_lng = location.get("long")
    if raw_lng is None:
        raw_lng = location.get("lng", location.get("lon"))
    lng = _coordinate(raw_lng)
    if lat is None or lng is None:
        return None
    return (lat, lng)
