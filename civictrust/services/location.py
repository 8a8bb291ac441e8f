"""Location capture and quality classification."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from civictrust.schemas.common import (
    CapturedLocation,
    Coordinates,
    LocationSnapshot,
    LocationStrength,
    PositionFix,
)
from civictrust.utils.errors import LocationAdvisory, LowAccuracy, MockLocationDetected, PermissionDenied, StaleFix
from civictrust.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)

PREFERRED_ACCURACY_METERS = 5.0
MAX_ALLOWED_ACCURACY_METERS = 10.0
WEAK_ACCURACY_METERS = 40.0
MAX_LOCATION_AGE_SECONDS = 30.0
MISSING_ACCURACY_METERS = 999.0


class LocationProvider(Protocol):
    """Device location API."""

    async def request_permission(self) -> bool: ...

    async def current_position(self) -> PositionFix: ...


@dataclass(frozen=True)
class CaptureResult:
    snapshot: LocationSnapshot
    warnings: list[LocationAdvisory] = field(default_factory=list)


def classify_strength(accuracy_meters: float) -> LocationStrength:
    if accuracy_meters <= PREFERRED_ACCURACY_METERS:
        return LocationStrength.strong
    if accuracy_meters <= MAX_ALLOWED_ACCURACY_METERS:
        return LocationStrength.medium
    if accuracy_meters <= WEAK_ACCURACY_METERS:
        return LocationStrength.weak
    return LocationStrength.none


def is_low_accuracy(snapshot: LocationSnapshot | CapturedLocation) -> bool:
    return snapshot.accuracy_meters > MAX_ALLOWED_ACCURACY_METERS


def is_stale(snapshot: LocationSnapshot | CapturedLocation) -> bool:
    return snapshot.age_seconds > MAX_LOCATION_AGE_SECONDS


def _advisories(snapshot: LocationSnapshot) -> list[LocationAdvisory]:
    warnings: list[LocationAdvisory] = []
    if is_low_accuracy(snapshot):
        warnings.append(LowAccuracy(accuracy_meters=snapshot.accuracy_meters))
    if is_stale(snapshot):
        warnings.append(StaleFix(age_seconds=snapshot.age_seconds))
    return warnings


def snapshot_from_fix(fix: PositionFix, now: datetime | None = None) -> CaptureResult:
    """Turn a raw device fix into a snapshot plus non-fatal advisories.

    Mocked fixes never produce a snapshot: ``MockLocationDetected`` is raised
    instead. Accuracy and age problems are reported as warnings; the engine's
    own rules remain the authoritative check.
    """

    if fix.mocked:
        logger.warning("Mocked location fix rejected", extra={"latitude": fix.latitude, "longitude": fix.longitude})
        raise MockLocationDetected()

    current = ensure_utc(now or utcnow())
    timestamp = ensure_utc(fix.timestamp) if fix.timestamp else current
    accuracy = max(fix.accuracy_meters if fix.accuracy_meters is not None else MISSING_ACCURACY_METERS, 0.0)
    age_seconds = max((current - timestamp).total_seconds(), 0.0)

    snapshot = LocationSnapshot(
        location=Coordinates(latitude=fix.latitude, longitude=fix.longitude),
        accuracy_meters=accuracy,
        timestamp=timestamp,
        age_seconds=age_seconds,
        is_mocked=False,
        strength=classify_strength(accuracy),
    )
    return CaptureResult(snapshot=snapshot, warnings=_advisories(snapshot))


def snapshot_from_capture(captured: CapturedLocation) -> LocationSnapshot:
    """Derive the strength for a snapshot captured on the client.

    Unlike ``snapshot_from_fix`` the mock flag is kept so the engine can
    record ``mock_location_detected`` against the action.
    """

    return LocationSnapshot(
        location=captured.location,
        accuracy_meters=captured.accuracy_meters,
        timestamp=ensure_utc(captured.timestamp),
        age_seconds=captured.age_seconds,
        is_mocked=captured.is_mocked,
        strength=classify_strength(captured.accuracy_meters),
    )


async def capture_snapshot(provider: LocationProvider, now: datetime | None = None) -> CaptureResult:
    """Ask the device for permission and a single high-accuracy fix."""

    if not await provider.request_permission():
        raise PermissionDenied("Location access is required to continue.")
    fix = await provider.current_position()
    return snapshot_from_fix(fix, now=now)


__all__ = [
    "PREFERRED_ACCURACY_METERS",
    "MAX_ALLOWED_ACCURACY_METERS",
    "MAX_LOCATION_AGE_SECONDS",
    "LocationProvider",
    "CaptureResult",
    "classify_strength",
    "is_low_accuracy",
    "is_stale",
    "snapshot_from_fix",
    "snapshot_from_capture",
    "capture_snapshot",
]
