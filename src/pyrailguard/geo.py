"""Great-circle distance."""

from __future__ import annotations

import math

from pyrailguard.models.geo import GeoPoint

#: Mean Earth radius in kilometers.
EARTH_RADIUS_KM: float = 6371.0


def haversine_km_coords(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Haversine distance in km between two ``(lon, lat)`` pairs in degrees.

    Non-finite input yields a non-finite result; callers must reject it
    explicitly.
    """
    if not all(math.isfinite(value) for value in (lon1, lat1, lon2, lat2)):
        return math.nan
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    # Rounding can push a marginally above 1 for antipodal points.
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Distance in km between two points."""
    return haversine_km_coords(a.longitude, a.latitude, b.longitude, b.latitude)
