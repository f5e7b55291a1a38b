"""Coordinate parsing and planar/spherical geometry helpers."""
import math
from typing import Any, Optional, Sequence

from app.services.errors import MalformedCoordinate

EARTH_RADIUS_M = 6371e3

# A ring is a closed sequence of [lng, lat] vertices (GeoJSON order)
Ring = Sequence[Sequence[float]]


def parse_coordinate(value: Any, axis: str) -> float:
    """Parse a latitude/longitude value sent as text or number.

    Raises MalformedCoordinate when the value is not a finite decimal
    inside the valid range for ``axis`` ("lat" or "lng").
    """
    if value is None or isinstance(value, bool):
        raise MalformedCoordinate(f"{axis} is required")
    try:
        number = float(str(value).strip())
    except ValueError:
        raise MalformedCoordinate(f"{axis} is not a decimal number: {value!r}")
    if not math.isfinite(number):
        raise MalformedCoordinate(f"{axis} must be finite: {value!r}")

    limit = 90.0 if axis == "lat" else 180.0
    if not -limit <= number <= limit:
        raise MalformedCoordinate(f"{axis} out of range: {number}")
    return number


def parse_optional_coordinate(value: Any, axis: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_coordinate(value, axis)


def point_in_ring(lng: float, lat: float, ring: Ring) -> bool:
    """Even-odd ray casting test of a point against one polygon ring.

    A horizontal ray is cast from the point; every edge it crosses
    toggles ``inside``.
    """
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lng < x_cross:
                inside = not inside
        j = i
    return inside


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def google_maps_url(lat: float, lng: float) -> str:
    return f"https://maps.google.com/?q={lat},{lng}"
