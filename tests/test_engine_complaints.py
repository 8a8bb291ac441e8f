from datetime import timedelta

import pytest

from civictrust.schemas.actions import PendingAction, VerifyCleanupPayload
from civictrust.schemas.common import Coordinates
from civictrust.schemas.complaint import ComplaintStatus
from civictrust.schemas.fraud import FraudFlag
from civictrust.services import engine
from civictrust.utils.errors import ComplaintNotFound
from factories import BIN_002, NOW, cleanup_action, report_action


def _verify(complaint_id: str, accepted: bool, at=NOW, notes=None) -> PendingAction:
    payload = VerifyCleanupPayload(
        complaint_id=complaint_id,
        accepted=accepted,
        notes=notes,
        verified_by="demo-admin-001",
        created_at=at,
    )
    return PendingAction.new(payload)


@pytest.fixture
def reported(state):
    result = engine.apply_action(state, report_action())
    return result.state, result.record_id


def test_report_issue_opens_complaint(reported):
    state, complaint_id = reported
    complaint = state.complaints[0]

    assert complaint.id == complaint_id
    assert complaint.status == ComplaintStatus.open
    assert complaint.report_fraud_flags == []
    assert complaint.image_hash in state.used_image_hashes
    assert "demo-citizen-001" in state.last_action_by_user
    assert state.sync_log[0].endswith("submitted with geo-tag evidence.")


def test_report_with_weak_gps_is_flagged_not_rejected(state):
    result = engine.apply_action(state, report_action(accuracy=25.0))
    complaint = result.state.complaints[0]
    assert complaint.report_fraud_flags == [FraudFlag.location_accuracy_failure]
    assert result.state.fraud_alerts[0].message == "Low GPS accuracy in complaint report."


def test_cleanup_inside_perimeter_moves_to_in_progress(reported):
    state, complaint_id = reported
    near = Coordinates(latitude=9.93245, longitude=78.1306)  # ~5.5 m away
    result = engine.apply_action(state, cleanup_action(complaint_id, location=near, at=NOW + timedelta(hours=2)))
    complaint = result.state.complaints[0]

    assert complaint.status == ComplaintStatus.in_progress
    proof = complaint.cleanup_proof
    assert proof is not None
    assert proof.ai_clean_verified is True
    assert proof.fraud_flags == []
    assert proof.distance_from_complaint_meters < 10
    assert proof.watermark.startswith("2026-03-02T11:30:00Z @ 9.93245, 78.13060")
    assert proof.watermark.endswith(f"| complaint:{complaint_id}")


def test_cleanup_with_same_photo_is_a_before_after_mismatch(reported):
    state, complaint_id = reported
    original = state.complaints[0].photo_ref
    result = engine.apply_action(state, cleanup_action(complaint_id, photo=original))
    proof = result.state.complaints[0].cleanup_proof

    assert proof.ai_clean_verified is False
    assert FraudFlag.before_after_mismatch in proof.fraud_flags
    assert FraudFlag.duplicate_image in proof.fraud_flags


def test_cleanup_outside_perimeter_keeps_proof_without_status_change(reported):
    state, complaint_id = reported
    far = Coordinates(latitude=9.9330, longitude=78.1306)  # ~67 m away
    result = engine.apply_action(state, cleanup_action(complaint_id, location=far))
    complaint = result.state.complaints[0]

    assert complaint.status == ComplaintStatus.open
    assert complaint.cleanup_proof is not None
    assert complaint.cleanup_proof.fraud_flags == [FraudFlag.geo_fence_failure]
    assert result.message.startswith("Cleanup proof rejected")


def test_cleanup_for_unknown_complaint_raises(state):
    with pytest.raises(ComplaintNotFound):
        engine.apply_action(state, cleanup_action("complaint-missing"))


def test_accepting_cleanup_resolves_complaint(reported):
    state, complaint_id = reported
    state = engine.apply_action(state, cleanup_action(complaint_id, location=BIN_002)).state
    resolved_at = NOW + timedelta(hours=5)
    result = engine.apply_action(state, _verify(complaint_id, accepted=True, at=resolved_at))
    complaint = result.state.complaints[0]

    assert complaint.status == ComplaintStatus.resolved
    assert complaint.resolved_at == resolved_at
    assert complaint.verification.accepted is True
    assert complaint.verification.notes == "Geo proof + after image accepted."


def test_rejecting_cleanup_reopens_complaint(reported):
    state, complaint_id = reported
    state = engine.apply_action(state, cleanup_action(complaint_id, location=BIN_002)).state
    result = engine.apply_action(state, _verify(complaint_id, accepted=False))
    complaint = result.state.complaints[0]

    assert complaint.status == ComplaintStatus.open
    assert complaint.resolved_at is None
    assert complaint.verification.notes == "Insufficient proof. Rework required."
    assert result.message == f"Complaint {complaint_id} reopened."
