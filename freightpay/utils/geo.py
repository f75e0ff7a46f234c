"""Geospatial utility helpers."""
from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance in kilometres between two WGS84 coordinates."""

    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2.0) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2.0) ** 2
    # Clamp: floating error can push a marginally above 1 for antipodal points.
    c = 2 * asin(min(1.0, sqrt(a)))
    return EARTH_RADIUS_KM * c


__all__ = ["EARTH_RADIUS_KM", "haversine_km"]
