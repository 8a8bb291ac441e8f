"""Verification and reward decision engine.

Every transition here is pure: it receives an ``AppState``, works on a deep
copy and returns the new state. Handlers raise ``CivicError`` subclasses for
user-visible failures (unknown bin, insufficient points...) and leave the
input untouched. Verification failures are not errors; they are recorded on
the produced record together with their reasons.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from civictrust.schemas.actions import (
    ActionType,
    DisposePayload,
    PendingAction,
    RedeemRewardPayload,
    ReportBinFullPayload,
    ReportIssuePayload,
    SubmitCleanupPayload,
    VerifyCleanupPayload,
)
from civictrust.schemas.bin import BinStatus
from civictrust.schemas.common import LocationSnapshot, UserLocationSnapshot
from civictrust.schemas.complaint import CleanupProof, CleanupVerification, Complaint, ComplaintStatus
from civictrust.schemas.disposal import DisposalRecord
from civictrust.schemas.fraud import AlertStatus, FraudFlag, Severity
from civictrust.schemas.state import AppState
from civictrust.schemas.wallet import (
    RedemptionRecord,
    RedemptionStatus,
    WalletEntry,
    WalletEntryType,
    WalletSource,
)
from civictrust.services import fraud
from civictrust.services.bins import find_bin, seed_bins
from civictrust.services.image_checks import consistency_check, content_hash, is_duplicate, validate_content
from civictrust.services.wallet import (
    COUPON_VALIDITY,
    FIRST_TIME_USER_BONUS_POINTS,
    REGULAR_REWARD_POINTS,
    balance,
)
from civictrust.utils.errors import (
    AlertNotFound,
    CivicError,
    ComplaintNotFound,
    InsufficientPoints,
    InvalidTransition,
    RedemptionNotFound,
)
from civictrust.utils.geo import distance_m
from civictrust.utils.time import ensure_utc

logger = logging.getLogger(__name__)

BIN_GEOFENCE_RADIUS_M = 5.0
CLEANUP_GEOFENCE_RADIUS_M = 10.0
SYNC_LOG_LIMIT = 40

_BIN_STATUS_REASONS = {
    BinStatus.reported_full: "Bin is reported full.",
    BinStatus.temporarily_disabled: "Bin is temporarily disabled.",
}


@dataclass(frozen=True)
class ActionResult:
    state: AppState
    action_id: str
    message: str
    record_id: str | None = None
    skipped: bool = False


def initial_state(now: datetime) -> AppState:
    return AppState(bins=seed_bins(now))


def _log(state: AppState, message: str, at: datetime) -> None:
    line = f"{ensure_utc(at):%H:%M:%S} - {message}"
    state.sync_log = [line, *state.sync_log][:SYNC_LOG_LIMIT]


def _user_snapshot(snapshot: LocationSnapshot) -> UserLocationSnapshot:
    return UserLocationSnapshot(
        location=snapshot.location,
        accuracy_meters=snapshot.accuracy_meters,
        timestamp=snapshot.timestamp,
    )


def _remember_hash(state: AppState, image_hash: str, duplicate: bool) -> None:
    # The used-hash set only grows with hashes that were not themselves duplicates.
    if not duplicate:
        state.used_image_hashes.insert(0, image_hash)


def _prepend_alerts(state: AppState, alerts: list) -> None:
    if alerts:
        state.fraud_alerts = [*alerts, *state.fraud_alerts]


def _rejection_reason(
    *,
    bin_status: BinStatus,
    qr_verified: bool,
    geo_verified: bool,
    ai_failure: str | None,
    flags: list[FraudFlag],
) -> str:
    reasons: list[str] = []
    if bin_status in _BIN_STATUS_REASONS:
        reasons.append(_BIN_STATUS_REASONS[bin_status])
    if not qr_verified:
        reasons.append(fraud.DISPOSAL_MESSAGES[FraudFlag.qr_mismatch])
    if not geo_verified:
        reasons.append(fraud.DISPOSAL_MESSAGES[FraudFlag.geo_fence_failure])
    if ai_failure:
        reasons.append(ai_failure)
    for flag in flags:
        message = fraud.DISPOSAL_MESSAGES[flag]
        if message not in reasons:
            reasons.append(message)
    return "; ".join(reasons) or "Validation failed."


def _dispose(state: AppState, action: PendingAction) -> tuple[str, str]:
    payload: DisposePayload = action.payload  # type: ignore[assignment]
    snapshot = payload.location
    bin_ = find_bin(state.bins, payload.bin_id)

    qr_verified = payload.qr_code_id.strip() == bin_.qr_code_id
    distance = distance_m(snapshot.location, bin_.location)
    checks = fraud.LocationChecks.of(snapshot)
    geo_verified = (
        distance <= BIN_GEOFENCE_RADIUS_M and not checks.stale and not checks.low_accuracy and not checks.mocked
    )

    validation = validate_content(payload.photo_ref, payload.qr_code_id)
    ai_verified = validation.quality_passed and validation.bin_detected and validation.waste_detected

    image_hash = content_hash(payload.photo_ref)
    duplicate = is_duplicate(state.used_image_hashes, image_hash)
    anomaly = fraud.is_location_anomaly(
        state.last_action_by_user.get(payload.user_id), snapshot.location, payload.created_at
    )
    cooldown = fraud.has_cooldown_violation(state.disposals, payload.user_id, payload.bin_id, payload.created_at)

    flags = fraud.disposal_flags(
        qr_verified=qr_verified,
        geo_verified=geo_verified,
        location=checks,
        duplicate=duplicate,
        anomaly=anomaly,
        cooldown=cooldown,
    )
    verified = bin_.status == BinStatus.available and qr_verified and geo_verified and ai_verified and not flags

    first_success = not any(item.user_id == payload.user_id and item.verified for item in state.disposals)
    base_points = REGULAR_REWARD_POINTS[payload.waste_size] if verified else 0
    bonus_points = FIRST_TIME_USER_BONUS_POINTS if verified and first_success else 0

    record = DisposalRecord(
        id=action.id,
        user_id=payload.user_id,
        bin_id=payload.bin_id,
        qr_code_id=payload.qr_code_id,
        photo_ref=payload.photo_ref,
        image_hash=image_hash,
        location=snapshot.location,
        accuracy_meters=snapshot.accuracy_meters,
        created_at=payload.created_at,
        distance_meters=distance,
        geo_verified=geo_verified,
        qr_verified=qr_verified,
        ai_verified=ai_verified,
        waste_size=payload.waste_size,
        fraud_flags=flags,
        verified=verified,
        points_awarded=base_points + bonus_points,
        rejection_reason=None
        if verified
        else _rejection_reason(
            bin_status=bin_.status,
            qr_verified=qr_verified,
            geo_verified=geo_verified,
            ai_failure=validation.failure_reason,
            flags=flags,
        ),
    )

    state.disposals.insert(0, record)
    _remember_hash(state, image_hash, duplicate)
    state.last_action_by_user[payload.user_id] = _user_snapshot(snapshot)
    if verified:
        state.bins = [
            item.model_copy(update={"last_used_at": payload.created_at}) if item.id == bin_.id else item
            for item in state.bins
        ]

    entries: list[WalletEntry] = []
    if base_points > 0:
        entries.append(
            WalletEntry(
                id=f"wallet-{action.id}-base",
                type=WalletEntryType.earn,
                points=base_points,
                reason=f"AI verified {payload.waste_size.value} waste disposal",
                source=WalletSource.ai_disposal_verified,
                reference_id=action.id,
                created_at=payload.created_at,
            )
        )
    if bonus_points > 0:
        entries.append(
            WalletEntry(
                id=f"wallet-{action.id}-bonus",
                type=WalletEntryType.earn,
                points=bonus_points,
                reason="First successful disposal bonus",
                source=WalletSource.first_time_bonus,
                reference_id=action.id,
                created_at=payload.created_at,
            )
        )
    if entries:
        state.wallet.history = [*entries, *state.wallet.history]

    _prepend_alerts(state, fraud.build_alerts(action.id, flags, fraud.DISPOSAL_MESSAGES, payload.created_at))

    logger.info(
        "Disposal evaluated",
        extra={
            "action_id": action.id,
            "bin_id": bin_.id,
            "verified": verified,
            "flags": [flag.value for flag in flags],
            "points": record.points_awarded,
        },
    )
    if verified:
        return f"Disposal {action.id} verified. {record.points_awarded} points credited.", record.id
    return f"Disposal {action.id} rejected. {record.rejection_reason}", record.id


def _report_issue(state: AppState, action: PendingAction) -> tuple[str, str]:
    payload: ReportIssuePayload = action.payload  # type: ignore[assignment]
    snapshot = payload.location

    image_hash = content_hash(payload.photo_ref)
    duplicate = is_duplicate(state.used_image_hashes, image_hash)
    anomaly = fraud.is_location_anomaly(
        state.last_action_by_user.get(payload.user_id), snapshot.location, payload.created_at
    )
    flags = fraud.report_flags(location=fraud.LocationChecks.of(snapshot), duplicate=duplicate, anomaly=anomaly)

    complaint = Complaint(
        id=action.id,
        user_id=payload.user_id,
        category=payload.category,
        description=payload.description,
        photo_ref=payload.photo_ref,
        image_hash=image_hash,
        location=snapshot.location,
        created_at=payload.created_at,
        status=ComplaintStatus.open,
        report_fraud_flags=flags,
    )

    state.complaints.insert(0, complaint)
    _remember_hash(state, image_hash, duplicate)
    state.last_action_by_user[payload.user_id] = _user_snapshot(snapshot)
    _prepend_alerts(state, fraud.build_alerts(action.id, flags, fraud.REPORT_MESSAGES, payload.created_at))
    return f"Complaint {action.id} submitted with geo-tag evidence.", complaint.id


def _complaint_index(state: AppState, complaint_id: str) -> int:
    for index, item in enumerate(state.complaints):
        if item.id == complaint_id:
            return index
    raise ComplaintNotFound(complaint_id=complaint_id)


def watermark(created_at: datetime, snapshot: LocationSnapshot, complaint_id: str) -> str:
    stamp = ensure_utc(created_at).isoformat().replace("+00:00", "Z")
    lat, lng = snapshot.location.latitude, snapshot.location.longitude
    return f"{stamp} @ {lat:.5f}, {lng:.5f} | complaint:{complaint_id}"


def _submit_cleanup(state: AppState, action: PendingAction) -> tuple[str, str]:
    payload: SubmitCleanupPayload = action.payload  # type: ignore[assignment]
    snapshot = payload.location
    index = _complaint_index(state, payload.complaint_id)
    complaint = state.complaints[index]

    distance = distance_m(snapshot.location, complaint.location)
    checks = fraud.LocationChecks.of(snapshot)
    geo_ok = (
        distance <= CLEANUP_GEOFENCE_RADIUS_M and not checks.low_accuracy and not checks.stale and not checks.mocked
    )

    image_hash = content_hash(payload.photo_ref)
    duplicate = is_duplicate(state.used_image_hashes, image_hash)
    mismatch = not consistency_check(complaint.photo_ref, payload.photo_ref)
    flags = fraud.cleanup_flags(geo_ok=geo_ok, location=checks, duplicate=duplicate, mismatch=mismatch)

    proof = CleanupProof(
        id=action.id,
        submitted_by=payload.user_id,
        photo_ref=payload.photo_ref,
        image_hash=image_hash,
        location=snapshot.location,
        accuracy_meters=snapshot.accuracy_meters,
        created_at=payload.created_at,
        watermark=watermark(payload.created_at, snapshot, complaint.id),
        distance_from_complaint_meters=distance,
        ai_clean_verified=not mismatch,
        fraud_flags=flags,
    )

    # The proof is kept for audit even when the geo-fence fails; only the status waits.
    state.complaints[index] = complaint.model_copy(
        update={
            "status": ComplaintStatus.in_progress if geo_ok else complaint.status,
            "cleanup_proof": proof,
        }
    )
    _remember_hash(state, image_hash, duplicate)
    state.last_action_by_user[payload.user_id] = _user_snapshot(snapshot)
    _prepend_alerts(state, fraud.build_alerts(action.id, flags, fraud.CLEANUP_MESSAGES, payload.created_at))

    if geo_ok:
        return f"Cleanup proof submitted for {complaint.id}.", proof.id
    return f"Cleanup proof rejected for {complaint.id}.", proof.id


def _verify_cleanup(state: AppState, action: PendingAction) -> tuple[str, str]:
    payload: VerifyCleanupPayload = action.payload  # type: ignore[assignment]
    index = _complaint_index(state, payload.complaint_id)
    complaint = state.complaints[index]

    notes = payload.notes
    if notes is None:
        notes = "Geo proof + after image accepted." if payload.accepted else "Insufficient proof. Rework required."

    state.complaints[index] = complaint.model_copy(
        update={
            "status": ComplaintStatus.resolved if payload.accepted else ComplaintStatus.open,
            "resolved_at": payload.created_at if payload.accepted else None,
            "verification": CleanupVerification(
                verified_by=payload.verified_by,
                accepted=payload.accepted,
                notes=notes,
                verified_at=payload.created_at,
            ),
        }
    )
    if payload.accepted:
        return f"Complaint {complaint.id} resolved.", complaint.id
    return f"Complaint {complaint.id} reopened.", complaint.id


def _redeem_reward(state: AppState, action: PendingAction) -> tuple[str, str]:
    payload: RedeemRewardPayload = action.payload  # type: ignore[assignment]
    available = balance(state.wallet.history)
    if available < payload.points_required:
        raise InsufficientPoints(balance=available, points_required=payload.points_required)

    redemption = RedemptionRecord(
        id=action.id,
        reward_id=payload.reward_id,
        reward_title=payload.reward_title,
        coupon_code=payload.coupon_code,
        points_used=payload.points_required,
        created_at=payload.created_at,
        expires_at=payload.created_at + COUPON_VALIDITY,
        status=RedemptionStatus.active,
    )
    entry = WalletEntry(
        id=f"wallet-{action.id}-redeem",
        type=WalletEntryType.redeem,
        points=payload.points_required,
        reason=f"Redeemed {payload.reward_title}",
        source=WalletSource.coupon_redemption,
        reference_id=action.id,
        created_at=payload.created_at,
    )
    state.redemptions.insert(0, redemption)
    state.wallet.history = [entry, *state.wallet.history]
    return f"Redeemed {payload.reward_title}. Coupon generated.", redemption.id


def _report_bin_full(state: AppState, action: PendingAction) -> tuple[str, str]:
    payload: ReportBinFullPayload = action.payload  # type: ignore[assignment]
    bin_ = find_bin(state.bins, payload.bin_id)
    state.bins = [
        item.model_copy(update={"status": BinStatus.reported_full}) if item.id == bin_.id else item
        for item in state.bins
    ]
    return f"Bin {bin_.id} marked as reported full.", bin_.id


_HANDLERS: dict[ActionType, Callable[[AppState, PendingAction], tuple[str, str]]] = {
    ActionType.dispose: _dispose,
    ActionType.report_issue: _report_issue,
    ActionType.submit_cleanup: _submit_cleanup,
    ActionType.verify_cleanup: _verify_cleanup,
    ActionType.redeem_reward: _redeem_reward,
    ActionType.report_bin_full: _report_bin_full,
}


def apply_action(state: AppState, action: PendingAction) -> ActionResult:
    """Apply one action and return the resulting state.

    Replaying an action id that was already applied returns the state as is.
    """

    if action.id in state.applied_action_ids:
        logger.info("Action already applied, skipping", extra={"action_id": action.id})
        return ActionResult(state=state, action_id=action.id, message="Action already applied.", skipped=True)

    next_state = state.model_copy(deep=True)
    message, record_id = _HANDLERS[action.type](next_state, action)
    next_state.applied_action_ids.insert(0, action.id)
    _log(next_state, message, action.created_at)
    return ActionResult(state=next_state, action_id=action.id, message=message, record_id=record_id)


def enqueue_action(state: AppState, action: PendingAction) -> AppState:
    """Queue an action for replay; the queue is kept oldest-first."""

    next_state = state.model_copy(deep=True)
    next_state.pending_actions.append(action)
    _log(next_state, f"Queued {action.type.value} for offline sync.", action.created_at)
    return next_state


def dequeue_action(state: AppState, action_id: str) -> AppState:
    next_state = state.model_copy(deep=True)
    next_state.pending_actions = [item for item in next_state.pending_actions if item.id != action_id]
    return next_state


def set_connectivity(state: AppState, online: bool, now: datetime) -> AppState:
    next_state = state.model_copy(deep=True)
    if next_state.is_online != online:
        next_state.is_online = online
        _log(next_state, "Back online. Syncing queued actions." if online else "Offline mode enabled.", now)
    return next_state


def record_failure(state: AppState, action: PendingAction, error: CivicError, now: datetime) -> AppState:
    next_state = state.model_copy(deep=True)
    label = action.type.value.replace("_", " ").capitalize()
    _log(next_state, f"{label} {action.id} failed: {error.message}", now)
    return next_state


def review_fraud_alert(state: AppState, alert_id: str, now: datetime) -> AppState:
    """Move an open alert to reviewed. Blocked alerts cannot be reviewed away."""

    for index, alert in enumerate(state.fraud_alerts):
        if alert.id == alert_id:
            break
    else:
        raise AlertNotFound(alert_id=alert_id)

    if alert.status == AlertStatus.reviewed:
        return state
    if alert.status == AlertStatus.blocked:
        raise InvalidTransition("Blocked alerts cannot be marked as reviewed.", alert_id=alert_id)

    next_state = state.model_copy(deep=True)
    next_state.fraud_alerts[index] = alert.model_copy(update={"status": AlertStatus.reviewed})
    _log(next_state, f"Fraud alert {alert_id} reviewed.", now)
    return next_state


def mark_redemption_used(state: AppState, redemption_id: str, now: datetime) -> AppState:
    for index, redemption in enumerate(state.redemptions):
        if redemption.id == redemption_id:
            break
    else:
        raise RedemptionNotFound(redemption_id=redemption_id)

    if redemption.status == RedemptionStatus.used:
        return state
    if redemption.status == RedemptionStatus.expired or ensure_utc(redemption.expires_at) <= ensure_utc(now):
        raise InvalidTransition("Coupon has expired.", redemption_id=redemption_id)

    next_state = state.model_copy(deep=True)
    next_state.redemptions[index] = redemption.model_copy(update={"status": RedemptionStatus.used})
    _log(next_state, f"Coupon {redemption.coupon_code} marked as used.", now)
    return next_state


def expire_redemptions(state: AppState, now: datetime) -> tuple[AppState, list[str]]:
    """Expire active coupons whose validity has elapsed; returns the expired ids."""

    current = ensure_utc(now)
    expired = [
        item.id
        for item in state.redemptions
        if item.status == RedemptionStatus.active and ensure_utc(item.expires_at) <= current
    ]
    if not expired:
        return state, []

    next_state = state.model_copy(deep=True)
    next_state.redemptions = [
        item.model_copy(update={"status": RedemptionStatus.expired}) if item.id in expired else item
        for item in next_state.redemptions
    ]
    _log(next_state, f"{len(expired)} coupon(s) expired.", now)
    return next_state, expired


def record_server_geo_result(
    state: AppState,
    action_id: str,
    valid: bool,
    now: datetime,
) -> AppState:
    """Record the server-side geo revalidation of a disposal.

    Disagreement raises one extra alert but never unverifies the record.
    """

    if valid:
        return state
    existing = fraud.alert_id(action_id, FraudFlag.geo_fence_failure)
    if any(alert.id == existing for alert in state.fraud_alerts):
        return state

    next_state = state.model_copy(deep=True)
    alert = fraud.make_alert(
        FraudFlag.geo_fence_failure,
        action_id,
        "Server-side geovalidation failed.",
        now,
        fraud.SERVER_GEO_RISK_SCORE,
        severity=Severity.high,
    )
    next_state.fraud_alerts.insert(0, alert)
    _log(next_state, "Server-side geovalidation flagged this disposal.", now)
    logger.warning("Server geo validation disagreed with local verdict", extra={"action_id": action_id})
    return next_state


__all__ = [
    "BIN_GEOFENCE_RADIUS_M",
    "CLEANUP_GEOFENCE_RADIUS_M",
    "SYNC_LOG_LIMIT",
    "ActionResult",
    "initial_state",
    "watermark",
    "apply_action",
    "enqueue_action",
    "dequeue_action",
    "set_connectivity",
    "record_failure",
    "review_fraud_alert",
    "mark_redemption_used",
    "expire_redemptions",
    "record_server_geo_result",
]
