"""Rule-based fraud flags, risk scoring and alert construction."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from civictrust.schemas.common import Coordinates, LocationSnapshot, UserLocationSnapshot
from civictrust.schemas.disposal import DisposalRecord
from civictrust.schemas.fraud import AlertStatus, FraudAlert, FraudFlag, Severity
from civictrust.services.location import is_low_accuracy, is_stale
from civictrust.utils.geo import distance_m
from civictrust.utils.time import ensure_utc

logger = logging.getLogger(__name__)

FLAG_WEIGHTS: dict[FraudFlag, int] = {
    FraudFlag.duplicate_image: 40,
    FraudFlag.location_anomaly: 50,
    FraudFlag.before_after_mismatch: 45,
    FraudFlag.qr_mismatch: 20,
    FraudFlag.geo_fence_failure: 50,
    FraudFlag.mock_location_detected: 50,
    FraudFlag.cooldown_violation: 30,
    FraudFlag.location_accuracy_failure: 20,
    FraudFlag.timestamp_invalid: 20,
}

_HIGH_SEVERITY = {
    FraudFlag.duplicate_image,
    FraudFlag.location_anomaly,
    FraudFlag.before_after_mismatch,
    FraudFlag.geo_fence_failure,
    FraudFlag.mock_location_detected,
}

BLOCK_THRESHOLD = 80
SERVER_GEO_RISK_SCORE = 70
LOCATION_SPEED_THRESHOLD_MPS = 33.33  # ~120 km/h
LOCATION_JUMP_THRESHOLD_M = 2000.0
DISPOSAL_COOLDOWN = timedelta(hours=2)

DISPOSAL_MESSAGES: dict[FraudFlag, str] = {
    FraudFlag.duplicate_image: "Duplicate image detected.",
    FraudFlag.location_anomaly: "Frequent location jump detected.",
    FraudFlag.before_after_mismatch: "Before/after mismatch detected.",
    FraudFlag.qr_mismatch: "QR does not match selected bin.",
    FraudFlag.geo_fence_failure: "Geo-fence validation failed.",
    FraudFlag.mock_location_detected: "Fake GPS detected. Action blocked.",
    FraudFlag.cooldown_violation: "Bin cooldown policy violated.",
    FraudFlag.location_accuracy_failure: "GPS accuracy above allowed threshold.",
    FraudFlag.timestamp_invalid: "Location timestamp is too old.",
}

REPORT_MESSAGES: dict[FraudFlag, str] = {
    FraudFlag.duplicate_image: "Complaint image is reused.",
    FraudFlag.location_anomaly: "Complaint submitted from suspicious movement pattern.",
    FraudFlag.before_after_mismatch: "Before/after mismatch detected.",
    FraudFlag.qr_mismatch: "QR mismatch detected.",
    FraudFlag.geo_fence_failure: "Geo-fence failure detected.",
    FraudFlag.mock_location_detected: "Fake GPS detected in complaint report.",
    FraudFlag.cooldown_violation: "Action frequency exceeded.",
    FraudFlag.location_accuracy_failure: "Low GPS accuracy in complaint report.",
    FraudFlag.timestamp_invalid: "Complaint location timestamp is stale.",
}

CLEANUP_MESSAGES: dict[FraudFlag, str] = {
    FraudFlag.duplicate_image: "Cleanup image is reused.",
    FraudFlag.location_anomaly: "Cleanup location anomaly detected.",
    FraudFlag.before_after_mismatch: "Cleanup proof appears identical to complaint image.",
    FraudFlag.qr_mismatch: "QR mismatch detected.",
    FraudFlag.geo_fence_failure: "Cleanup proof submitted outside complaint perimeter.",
    FraudFlag.mock_location_detected: "Fake GPS detected in cleanup proof.",
    FraudFlag.cooldown_violation: "Action frequency exceeded.",
    FraudFlag.location_accuracy_failure: "Low GPS accuracy in cleanup proof.",
    FraudFlag.timestamp_invalid: "Cleanup location timestamp is stale.",
}


def severity_for(flag: FraudFlag) -> Severity:
    return Severity.high if flag in _HIGH_SEVERITY else Severity.medium


def risk_score(flags: Iterable[FraudFlag]) -> int:
    """Sum of flag weights; deliberately not capped at 100."""

    return sum(FLAG_WEIGHTS[flag] for flag in flags)


def alert_status(score: int) -> AlertStatus:
    return AlertStatus.blocked if score >= BLOCK_THRESHOLD else AlertStatus.open


def is_location_anomaly(
    previous: UserLocationSnapshot | None,
    current: Coordinates,
    timestamp: datetime,
) -> bool:
    """Detect impossible travel since the user's previous action."""

    if previous is None:
        return False
    elapsed = max((ensure_utc(timestamp) - ensure_utc(previous.timestamp)).total_seconds(), 1.0)
    travelled = distance_m(previous.location, current)
    return travelled / elapsed > LOCATION_SPEED_THRESHOLD_MPS or travelled > LOCATION_JUMP_THRESHOLD_M


def has_cooldown_violation(
    disposals: Iterable[DisposalRecord],
    user_id: str,
    bin_id: str,
    at: datetime,
) -> bool:
    """True when the user already disposed at this bin inside the cooldown window.

    The window is ``(at - 2h, at]`` and counts prior disposals whether or not
    they were verified.
    """

    at = ensure_utc(at)
    cutoff = at - DISPOSAL_COOLDOWN
    return any(
        item.user_id == user_id and item.bin_id == bin_id and cutoff < ensure_utc(item.created_at) <= at
        for item in disposals
    )


@dataclass(frozen=True)
class LocationChecks:
    mocked: bool
    low_accuracy: bool
    stale: bool

    @classmethod
    def of(cls, snapshot: LocationSnapshot) -> "LocationChecks":
        return cls(mocked=snapshot.is_mocked, low_accuracy=is_low_accuracy(snapshot), stale=is_stale(snapshot))


def collect_flags(conditions: Iterable[tuple[FraudFlag, bool]]) -> list[FraudFlag]:
    """Keep the flags whose condition holds, in order and without repeats."""

    flags: list[FraudFlag] = []
    for flag, raised in conditions:
        if raised and flag not in flags:
            flags.append(flag)
    return flags


def disposal_flags(
    *,
    qr_verified: bool,
    geo_verified: bool,
    location: LocationChecks,
    duplicate: bool,
    anomaly: bool,
    cooldown: bool,
) -> list[FraudFlag]:
    return collect_flags(
        [
            (FraudFlag.qr_mismatch, not qr_verified),
            (FraudFlag.geo_fence_failure, not geo_verified),
            (FraudFlag.mock_location_detected, location.mocked),
            (FraudFlag.duplicate_image, duplicate),
            (FraudFlag.location_anomaly, anomaly),
            (FraudFlag.cooldown_violation, cooldown),
            (FraudFlag.location_accuracy_failure, location.low_accuracy),
            (FraudFlag.timestamp_invalid, location.stale),
        ]
    )


def report_flags(*, location: LocationChecks, duplicate: bool, anomaly: bool) -> list[FraudFlag]:
    return collect_flags(
        [
            (FraudFlag.duplicate_image, duplicate),
            (FraudFlag.location_anomaly, anomaly),
            (FraudFlag.mock_location_detected, location.mocked),
            (FraudFlag.location_accuracy_failure, location.low_accuracy),
            (FraudFlag.timestamp_invalid, location.stale),
        ]
    )


def cleanup_flags(
    *,
    geo_ok: bool,
    location: LocationChecks,
    duplicate: bool,
    mismatch: bool,
) -> list[FraudFlag]:
    return collect_flags(
        [
            (FraudFlag.geo_fence_failure, not geo_ok),
            (FraudFlag.duplicate_image, duplicate),
            (FraudFlag.before_after_mismatch, mismatch),
            (FraudFlag.mock_location_detected, location.mocked),
            (FraudFlag.location_accuracy_failure, location.low_accuracy),
            (FraudFlag.timestamp_invalid, location.stale),
        ]
    )


def alert_id(action_id: str, flag: FraudFlag) -> str:
    return f"fraud-{action_id}-{flag.value}"


def make_alert(
    flag: FraudFlag,
    action_id: str,
    message: str,
    created_at: datetime,
    score: int,
    severity: Severity | None = None,
) -> FraudAlert:
    return FraudAlert(
        id=alert_id(action_id, flag),
        type=flag,
        severity=severity or severity_for(flag),
        message=message,
        action_id=action_id,
        risk_score=score,
        status=alert_status(score),
        created_at=created_at,
    )


def build_alerts(
    action_id: str,
    flags: list[FraudFlag],
    messages: Mapping[FraudFlag, str],
    created_at: datetime,
) -> list[FraudAlert]:
    """One alert per flag, all sharing the action's combined risk score."""

    if not flags:
        return []
    score = risk_score(flags)
    alerts = [make_alert(flag, action_id, messages[flag], created_at, score) for flag in flags]
    if score >= BLOCK_THRESHOLD:
        logger.warning(
            "Action auto-blocked by fraud rules",
            extra={"action_id": action_id, "risk_score": score, "flags": [flag.value for flag in flags]},
        )
    return alerts


__all__ = [
    "FLAG_WEIGHTS",
    "BLOCK_THRESHOLD",
    "SERVER_GEO_RISK_SCORE",
    "DISPOSAL_COOLDOWN",
    "DISPOSAL_MESSAGES",
    "REPORT_MESSAGES",
    "CLEANUP_MESSAGES",
    "LocationChecks",
    "severity_for",
    "risk_score",
    "alert_status",
    "is_location_anomaly",
    "has_cooldown_violation",
    "collect_flags",
    "disposal_flags",
    "report_flags",
    "cleanup_flags",
    "alert_id",
    "make_alert",
    "build_alerts",
]
