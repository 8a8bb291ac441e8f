"""Bin registry helpers and the seeded Madurai bins."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from civictrust.schemas.bin import Bin, BinStatus
from civictrust.schemas.common import Coordinates
from civictrust.utils.errors import BinNotFound
from civictrust.utils.geo import distance_m

# (id suffix, name, ward, latitude, longitude)
_SEED_BINS = [
    ("001", "Periyar Bus Stand Bin Hub", "Ward 12", 9.9166, 78.1194),
    ("002", "Goripalayam Smart Bin", "Ward 23", 9.9324, 78.1306),
    ("003", "KK Nagar Community Bin", "Ward 38", 9.8912, 78.1331),
    ("004", "Mattuthavani Transport Hub Bin", "Ward 45", 9.9287, 78.1482),
    ("005", "Simmakkal Riverfront Bin", "Ward 9", 9.9255, 78.1144),
]


def seed_bins(created_at: datetime) -> list[Bin]:
    return [
        Bin(
            id=f"bin-{suffix}",
            qr_code_id=f"MMC-BIN-{suffix}",
            name=name,
            ward=ward,
            location=Coordinates(latitude=lat, longitude=lng),
            status=BinStatus.available,
            created_at=created_at,
        )
        for suffix, name, ward, lat, lng in _SEED_BINS
    ]


def find_bin(bins: Iterable[Bin], bin_id: str) -> Bin:
    for item in bins:
        if item.id == bin_id:
            return item
    raise BinNotFound(bin_id=bin_id)


def suggest_next_available_bin(
    bins: Iterable[Bin],
    exclude_id: str | None,
    origin: Coordinates | None = None,
) -> Bin | None:
    """Nearest available bin other than ``exclude_id``.

    Without an origin the first available bin in registry order is returned.
    """

    candidates = [item for item in bins if item.status == BinStatus.available and item.id != exclude_id]
    if not candidates:
        return None
    if origin is None:
        return candidates[0]
    return min(candidates, key=lambda item: distance_m(origin, item.location))


__all__ = ["seed_bins", "find_bin", "suggest_next_available_bin"]
