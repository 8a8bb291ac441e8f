"""Best-effort replication of committed actions to the hosted backend."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from civictrust.schemas.actions import ActionType, PendingAction
from civictrust.schemas.auth import UserProfile
from civictrust.schemas.common import Coordinates
from civictrust.schemas.complaint import CleanupProof, Complaint
from civictrust.schemas.disposal import DisposalRecord
from civictrust.schemas.fraud import FraudAlert
from civictrust.schemas.state import AppState
from civictrust.schemas.wallet import RedemptionRecord, WalletEntry
from civictrust.services.engine import BIN_GEOFENCE_RADIUS_M
from civictrust.services.remote import GeoValidationResult, RemoteClient, iso, validate_geo_on_server
from civictrust.utils.time import utcnow

logger = logging.getLogger(__name__)


def disposal_row(disposal: DisposalRecord) -> dict[str, Any]:
    return {
        "id": disposal.id,
        "user_id": disposal.user_id,
        "bin_id": disposal.bin_id,
        "ai_verified": disposal.ai_verified,
        "geo_verified": disposal.geo_verified,
        "qr_verified": disposal.qr_verified,
        "distance_m": disposal.distance_meters,
        "accuracy_m": disposal.accuracy_meters,
        "points_awarded": disposal.points_awarded,
        "waste_size": disposal.waste_size.value,
        "image_hash": disposal.image_hash,
        "captured_at": iso(disposal.created_at),
        "created_at": iso(disposal.created_at),
    }


def wallet_entry_row(entry: WalletEntry, user_id: str) -> dict[str, Any]:
    return {
        "id": entry.id,
        "user_id": user_id,
        "points": entry.signed_points,
        "reason": entry.reason,
        "source": entry.source.value,
        "created_at": iso(entry.created_at),
    }


def redemption_row(redemption: RedemptionRecord, user_id: str) -> dict[str, Any]:
    return {
        "id": redemption.id,
        "user_id": user_id,
        "reward_id": redemption.reward_id,
        "coupon_code": redemption.coupon_code,
        "points_used": redemption.points_used,
        "status": redemption.status.value,
        "created_at": iso(redemption.created_at),
        "expires_at": iso(redemption.expires_at),
    }


def complaint_row(complaint: Complaint) -> dict[str, Any]:
    return {
        "id": complaint.id,
        "user_id": complaint.user_id,
        "category": complaint.category.value,
        "description": complaint.description,
        "photo_url": complaint.photo_ref,
        "image_hash": complaint.image_hash,
        "latitude": complaint.location.latitude,
        "longitude": complaint.location.longitude,
        "status": complaint.status.value,
        "created_at": iso(complaint.created_at),
        "resolved_at": iso(complaint.resolved_at),
    }


def complaint_update_row(complaint: Complaint, updated_by: str, remarks: str) -> dict[str, Any]:
    return {
        "complaint_id": complaint.id,
        "status": complaint.status.value,
        "updated_by": updated_by,
        "remarks": remarks,
        "updated_at": iso(utcnow()),
    }


def cleanup_proof_row(proof: CleanupProof, complaint_id: str) -> dict[str, Any]:
    return {
        "id": proof.id,
        "complaint_id": complaint_id,
        "submitted_by": proof.submitted_by,
        "photo_url": proof.photo_ref,
        "image_hash": proof.image_hash,
        "latitude": proof.location.latitude,
        "longitude": proof.location.longitude,
        "distance_from_complaint_m": proof.distance_from_complaint_meters,
        "created_at": iso(proof.created_at),
    }


def fraud_alert_row(alert: FraudAlert, user_id: str) -> dict[str, Any]:
    return {
        "id": alert.id,
        "user_id": user_id,
        "fraud_type": alert.type.value,
        "risk_score": alert.risk_score,
        "details": alert.message,
        "created_at": iso(alert.created_at),
    }


def location_log_row(user_id: str, location: Coordinates, accuracy: float, device_id: str) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "latitude": location.latitude,
        "longitude": location.longitude,
        "accuracy": accuracy,
        "device_id": device_id,
        "created_at": iso(utcnow()),
    }


def user_profile_row(profile: UserProfile) -> dict[str, Any]:
    return {
        "id": profile.id,
        "phone_number": profile.email,
        "name": profile.name,
        "ward": profile.ward,
        "device_id": profile.device_id,
        "created_at": iso(profile.created_at),
    }


@dataclass(frozen=True)
class SyncOutcome:
    action_id: str
    geo: GeoValidationResult | None = None


async def sync_user_profile(remote: RemoteClient, profile: UserProfile) -> None:
    await remote.upsert("users", user_profile_row(profile))


async def _sync_wallet(remote: RemoteClient, state: AppState, action_id: str, user_id: str) -> None:
    for entry in state.wallet.history:
        if entry.reference_id == action_id:
            await remote.insert("wallet_entries", wallet_entry_row(entry, user_id))


async def _sync_dispose(
    remote: RemoteClient, action: PendingAction, state: AppState, user_id: str, device_id: str
) -> GeoValidationResult | None:
    disposal = next((item for item in state.disposals if item.id == action.id), None)
    if disposal is None:
        return None

    await remote.upsert("disposals", disposal_row(disposal))
    if disposal.verified:
        await remote.update("bins", {"last_used_at": iso(disposal.created_at)}, match={"id": disposal.bin_id})
    await _sync_wallet(remote, state, action.id, user_id)
    await remote.insert(
        "user_location_logs", location_log_row(user_id, disposal.location, disposal.accuracy_meters, device_id)
    )

    bin_ = next((item for item in state.bins if item.id == disposal.bin_id), None)
    if bin_ is None:
        return None
    return await validate_geo_on_server(
        remote,
        bin_location=bin_.location,
        user_location=disposal.location,
        allowed_radius_m=BIN_GEOFENCE_RADIUS_M,
        accuracy_m=disposal.accuracy_meters,
        age_s=action.payload.location.age_seconds,  # type: ignore[union-attr]
    )


async def _sync_report_issue(
    remote: RemoteClient, action: PendingAction, state: AppState, user_id: str, device_id: str
) -> None:
    complaint = next((item for item in state.complaints if item.id == action.id), None)
    if complaint is None:
        return
    await remote.upsert("complaints", complaint_row(complaint))
    await remote.insert(
        "user_location_logs",
        location_log_row(user_id, complaint.location, action.payload.location.accuracy_meters, device_id),  # type: ignore[union-attr]
    )


async def _sync_cleanup(remote: RemoteClient, action: PendingAction, state: AppState, user_id: str) -> None:
    complaint = next(
        (item for item in state.complaints if item.cleanup_proof and item.cleanup_proof.id == action.id), None
    )
    if complaint is None or complaint.cleanup_proof is None:
        return
    await remote.insert("cleanup_proofs", cleanup_proof_row(complaint.cleanup_proof, complaint.id))
    await remote.upsert("complaints", complaint_row(complaint))
    await remote.insert("complaint_updates", complaint_update_row(complaint, user_id, "Cleanup proof submitted"))


async def _sync_verify(remote: RemoteClient, action: PendingAction, state: AppState, user_id: str) -> None:
    payload = action.payload
    complaint = next((item for item in state.complaints if item.id == payload.complaint_id), None)  # type: ignore[union-attr]
    if complaint is None:
        return
    remarks = "Resolved by admin verification" if payload.accepted else "Rejected and reopened"  # type: ignore[union-attr]
    await remote.upsert("complaints", complaint_row(complaint))
    await remote.insert("complaint_updates", complaint_update_row(complaint, user_id, remarks))


async def _sync_redeem(remote: RemoteClient, action: PendingAction, state: AppState, user_id: str) -> None:
    redemption = next((item for item in state.redemptions if item.id == action.id), None)
    if redemption is None:
        return
    await remote.insert("reward_redemptions", redemption_row(redemption, user_id))
    await _sync_wallet(remote, state, action.id, user_id)


async def _sync_bin_full(remote: RemoteClient, action: PendingAction, user_id: str) -> None:
    payload = action.payload
    await remote.insert(
        "bin_reports",
        {
            "bin_id": payload.bin_id,  # type: ignore[union-attr]
            "reported_by": user_id,
            "reason": payload.reason,  # type: ignore[union-attr]
            "reported_at": iso(utcnow()),
        },
    )
    await remote.update("bins", {"status": "reported_full"}, match={"id": payload.bin_id})  # type: ignore[union-attr]


async def sync_action(
    remote: RemoteClient,
    action: PendingAction,
    state: AppState,
    *,
    user_id: str,
    device_id: str,
) -> SyncOutcome:
    """Push the rows produced by one committed action.

    ``state`` is the snapshot committed right after the action. Every call
    is fire-and-forget; nothing here can undo the local verdict.
    """

    if not remote.enabled:
        return SyncOutcome(action_id=action.id)

    geo: GeoValidationResult | None = None
    if action.type == ActionType.dispose:
        geo = await _sync_dispose(remote, action, state, user_id, device_id)
    elif action.type == ActionType.report_issue:
        await _sync_report_issue(remote, action, state, user_id, device_id)
    elif action.type == ActionType.submit_cleanup:
        await _sync_cleanup(remote, action, state, user_id)
    elif action.type == ActionType.verify_cleanup:
        await _sync_verify(remote, action, state, user_id)
    elif action.type == ActionType.redeem_reward:
        await _sync_redeem(remote, action, state, user_id)
    elif action.type == ActionType.report_bin_full:
        await _sync_bin_full(remote, action, user_id)

    for alert in state.fraud_alerts:
        if alert.action_id == action.id:
            await remote.insert("fraud_flags", fraud_alert_row(alert, user_id))

    logger.info("Action synced", extra={"action_id": action.id, "type": action.type.value})
    return SyncOutcome(action_id=action.id, geo=geo)


__all__ = [
    "SyncOutcome",
    "disposal_row",
    "wallet_entry_row",
    "redemption_row",
    "complaint_row",
    "complaint_update_row",
    "cleanup_proof_row",
    "fraud_alert_row",
    "location_log_row",
    "user_profile_row",
    "sync_user_profile",
    "sync_action",
]
