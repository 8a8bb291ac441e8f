"""Geospatial utility helpers."""
from __future__ import annotations

from math import asin, cos, floor, radians, sin, sqrt
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from civictrust.schemas.common import Coordinates

EARTH_RADIUS_M = 6_371_000.0

# 1/200 degree grid, roughly 550 m at the equator.
HOTSPOT_CELLS_PER_DEGREE = 200


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the distance in meters between two WGS84 coordinates."""

    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2.0) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2.0) ** 2
    c = 2 * asin(min(1.0, sqrt(a)))
    return EARTH_RADIUS_M * c


def distance_m(a: "Coordinates", b: "Coordinates") -> float:
    """Great-circle distance in meters between two coordinate values."""

    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def _grid(value: float) -> str:
    # Half-up rounding so that cell edges do not depend on banker's rounding.
    return f"{floor(value * HOTSPOT_CELLS_PER_DEGREE + 0.5) / HOTSPOT_CELLS_PER_DEGREE:.3f}"


def hotspot_key(coords: "Coordinates") -> str:
    """Return the grid-cell key used to bucket nearby events.

    Longitude wraparound at +/-180 degrees is not handled; cells on either
    side of the antimeridian get distinct keys.
    """

    return f"{_grid(coords.latitude)}, {_grid(coords.longitude)}"


__all__ = ["EARTH_RADIUS_M", "haversine_m", "distance_m", "hotspot_key"]
