"""Great-circle distance between decoded positions."""

from __future__ import annotations

import math

EARTH_RADIUS_M = 6378137  # WGS-84 equatorial radius


def distance_meters(
    p1: tuple[float, float], p2: tuple[float, float]
) -> float:
    """Haversine distance in meters between two (latitude, longitude) pairs."""
    lat1, lon1 = math.radians(p1[0]), math.radians(p1[1])
    lat2, lon2 = math.radians(p2[0]), math.radians(p2[1])
    d_lat = lat2 - lat1
    d_lon = lon2 - lon1

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c
