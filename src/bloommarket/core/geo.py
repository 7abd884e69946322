from __future__ import annotations

import math
import random
from math import atan2, cos, radians, sin, sqrt
from typing import Protocol

from bloommarket.core.errors import InvalidCoordinate
from bloommarket.domain.models import Coordinate, format_address

"""
Geospatial helpers.

A tiny geometry layer so the proximity ranking and the mock generator can do distance
math without pulling in heavier GIS dependencies.
"""

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0


class LatLon(Protocol):
    latitude: float
    longitude: float


def _checked(point: LatLon) -> tuple[float, float]:
    try:
        lat = float(point.latitude)
        lon = float(point.longitude)
    except (AttributeError, TypeError, ValueError) as exc:
        raise InvalidCoordinate(f"Not a coordinate: {point!r}") from exc
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinate(f"Coordinate must be finite: ({lat}, {lon})")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(f"Latitude {lat} outside [-90, 90]")
    if not -180.0 <= lon <= 180.0:
        raise InvalidCoordinate(f"Longitude {lon} outside [-180, 180]")
    return lat, lon


def distance_km(a: LatLon, b: LatLon) -> float:
    """Great-circle (Haversine) distance in kilometers.

    Raises:
        InvalidCoordinate: If either point is out of range or not numeric.
    """
    lat1, lon1 = _checked(a)
    lat2, lon2 = _checked(b)

    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)

    h = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(h), sqrt(1 - h))


def nearby_point(base: LatLon, *, radius_km: float, rng: random.Random | None = None) -> Coordinate:
    """Random point inside a `radius_km`-wide box centred on `base` (for generated data)."""
    lat0, lon0 = _checked(base)
    rng = rng or random.Random()
    lat = lat0 + (rng.random() - 0.5) * (radius_km / KM_PER_DEGREE_LAT)
    # Longitude degrees shrink towards the poles; clamp so we never divide by ~0.
    lon_scale = KM_PER_DEGREE_LAT * max(cos(radians(lat0)), 1e-6)
    lon = lon0 + (rng.random() - 0.5) * (radius_km / lon_scale)

    lat = min(90.0, max(-90.0, lat))
    lon = ((lon + 180.0) % 360.0) - 180.0
    return Coordinate(latitude=lat, longitude=lon, address=format_address(lat, lon))
