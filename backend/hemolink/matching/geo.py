"""
Haversine distance between two geographical points.
Used for donor search radius filtering and distance-to-hospital reporting.
"""

from __future__ import annotations

import math

from ..models.base import GeoPoint

EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance on a spherical Earth.

    This is "as the crow flies" distance, not road distance.

    Args:
        lat1, lon1: Latitude and longitude of point 1
        lat2, lon2: Latitude and longitude of point 2

    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push a just past 1 for near-antipodal points.
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_between(origin: GeoPoint, target: GeoPoint) -> float:
    return haversine_distance(origin.latitude, origin.longitude, target.latitude, target.longitude)


def within_radius(origin: GeoPoint, target: GeoPoint, radius_km: float) -> bool:
    return distance_between(origin, target) <= radius_km
