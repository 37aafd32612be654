"""
Geo helpers — great-circle distance for client-side radius filtering.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    @property
    def is_valid(self) -> bool:
        return -90 <= self.latitude <= 90 and -180 <= self.longitude <= 180


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """
    Distance between two points in kilometres, rounded to 2 decimals.

    Example:
        haversine_km(Coordinates(41.3874, 2.1686), Coordinates(40.4168, -3.7038))
        # roughly 505 km
    """
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return round(EARTH_RADIUS_KM * c, 2)


__all__ = ("Coordinates", "haversine_km", "EARTH_RADIUS_KM")
