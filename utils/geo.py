"""
Small collection of geographic helpers shared by the cache tiers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0

# Beyond this latitude a longitude window is meaningless; skip the bound.
_POLAR_CUTOFF_DEG = 80.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return great-circle distance between two WGS84 coordinates in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def is_ungeocoded(lat: float, lon: float) -> bool:
    """(0, 0) is the "no coordinates" sentinel, not a real location."""
    return lat == 0.0 and lon == 0.0


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    # None when the longitude window wraps the antimeridian or reaches a pole.
    min_lon: Optional[float]
    max_lon: Optional[float]


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """Rectangular pre-filter that contains every point within `radius_km`.

    The longitude half-width uses the cosine of the box's most poleward latitude
    so that the box never cuts off points the exact haversine check would keep.
    """
    lat_delta = radius_km / KM_PER_DEGREE
    min_lat = lat - lat_delta
    max_lat = lat + lat_delta

    widest = min(90.0, abs(lat) + lat_delta)
    if widest >= _POLAR_CUTOFF_DEG:
        return BoundingBox(min_lat, max_lat, None, None)

    lon_delta = radius_km / (KM_PER_DEGREE * math.cos(math.radians(widest)))
    min_lon = lon - lon_delta
    max_lon = lon + lon_delta
    if min_lon < -180.0 or max_lon > 180.0:
        return BoundingBox(min_lat, max_lat, None, None)
    return BoundingBox(min_lat, max_lat, min_lon, max_lon)
