from datetime import timedelta

import pytest

from civictrust.schemas.bin import BinStatus
from civictrust.schemas.common import Coordinates
from civictrust.schemas.disposal import WasteSize
from civictrust.schemas.fraud import AlertStatus, FraudFlag
from civictrust.schemas.wallet import WalletSource
from civictrust.services import engine
from civictrust.services.wallet import balance
from civictrust.utils.errors import BinNotFound
from factories import BIN_001, BIN_002, NOW, dispose_action, photo_ref, snapshot


def test_scenario_exact_location_fresh_photo_is_verified(state):
    action = dispose_action(location=snapshot(BIN_001, accuracy=2.0, age=1.0), size=WasteSize.medium)

    result = engine.apply_action(state, action)
    record = result.state.disposals[0]

    assert record.verified is True
    assert record.qr_verified and record.geo_verified and record.ai_verified
    assert record.fraud_flags == []
    assert record.distance_meters == 0.0
    assert record.points_awarded == 10 + 50
    assert record.rejection_reason is None
    assert balance(result.state.wallet.history) == 60
    sources = [entry.source for entry in result.state.wallet.history]
    assert sources == [WalletSource.ai_disposal_verified, WalletSource.first_time_bonus]
    assert result.state.bins[0].last_used_at == NOW
    assert result.state.fraud_alerts == []
    assert result.state.sync_log[0].startswith("09:30:00 - Disposal")


def test_bonus_is_only_granted_once(state):
    first = engine.apply_action(state, dispose_action(size=WasteSize.large))
    later = NOW + timedelta(hours=3)
    second_action = dispose_action(
        size=WasteSize.large,
        photo=photo_ref("MMC-BIN-001", start=500),
        location=snapshot(at=later),
        at=later,
    )
    second = engine.apply_action(first.state, second_action)

    assert second.state.disposals[0].verified is True
    assert second.state.disposals[0].points_awarded == 20
    assert balance(second.state.wallet.history) == 20 + 50 + 20


def test_home_daily_verified_disposal_awards_no_regular_points(state):
    result = engine.apply_action(state, dispose_action(size=WasteSize.home_daily))
    record = result.state.disposals[0]
    assert record.verified is True
    assert record.points_awarded == 50
    assert [entry.id for entry in result.state.wallet.history] == [f"wallet-{record.id}-bonus"]


def test_scenario_wrong_qr_code_is_rejected(state):
    action = dispose_action(qr="WRONG-CODE", photo=photo_ref("WRONG-CODE"))
    result = engine.apply_action(state, action)
    record = result.state.disposals[0]

    assert record.qr_verified is False
    assert FraudFlag.qr_mismatch in record.fraud_flags
    assert record.verified is False
    assert record.points_awarded == 0
    assert "QR does not match selected bin." in record.rejection_reason
    assert result.state.wallet.history == []
    assert result.state.fraud_alerts[0].id == f"fraud-{record.id}-qr_mismatch"


def test_reused_photo_is_flagged_duplicate(state):
    photo = photo_ref("MMC-BIN-001")
    first = engine.apply_action(state, dispose_action(photo=photo))
    assert first.state.disposals[0].verified is True

    later = NOW + timedelta(hours=3)
    second = engine.apply_action(first.state, dispose_action(photo=photo, location=snapshot(at=later), at=later))
    record = second.state.disposals[0]

    assert FraudFlag.duplicate_image in record.fraud_flags
    assert record.verified is False
    # the used-hash set does not grow with the duplicate
    assert second.state.used_image_hashes == first.state.used_image_hashes


@pytest.mark.parametrize("status", [BinStatus.reported_full, BinStatus.temporarily_disabled])
def test_unavailable_bin_never_verifies(state, status):
    state.bins[0] = state.bins[0].model_copy(update={"status": status})
    result = engine.apply_action(state, dispose_action())
    record = result.state.disposals[0]

    assert record.qr_verified and record.geo_verified and record.ai_verified
    assert record.fraud_flags == []
    assert record.verified is False
    assert record.points_awarded == 0


def test_outside_geofence_is_rejected(state):
    away = Coordinates(latitude=9.9167, longitude=78.1194)  # ~11 m north
    result = engine.apply_action(state, dispose_action(location=snapshot(away)))
    record = result.state.disposals[0]

    assert record.geo_verified is False
    assert record.fraud_flags == [FraudFlag.geo_fence_failure]
    assert record.rejection_reason == "Geo-fence validation failed."


def test_mocked_and_weak_location_raise_blocking_alerts(state):
    action = dispose_action(location=snapshot(accuracy=25.0, age=40.0, mocked=True))
    result = engine.apply_action(state, action)
    record = result.state.disposals[0]

    assert record.fraud_flags == [
        FraudFlag.geo_fence_failure,
        FraudFlag.mock_location_detected,
        FraudFlag.location_accuracy_failure,
        FraudFlag.timestamp_invalid,
    ]
    assert {alert.status for alert in result.state.fraud_alerts} == {AlertStatus.blocked}
    assert {alert.risk_score for alert in result.state.fraud_alerts} == {140}


def test_failed_image_validation_keeps_reason(state):
    action = dispose_action(photo=photo_ref("MMC-BIN-001", passing=False))
    record = engine.apply_action(state, action).state.disposals[0]

    assert record.ai_verified is False
    assert record.verified is False
    assert record.fraud_flags == []
    assert record.rejection_reason in {"Dustbin not detected.", "Waste not detected."}


def test_second_disposal_inside_cooldown_is_flagged(state):
    first = engine.apply_action(state, dispose_action())
    later = NOW + timedelta(minutes=30)
    second = engine.apply_action(
        first.state,
        dispose_action(photo=photo_ref("MMC-BIN-001", start=700), location=snapshot(at=later), at=later),
    )
    assert second.state.disposals[0].fraud_flags == [FraudFlag.cooldown_violation]
    assert second.state.disposals[0].verified is False


def test_unknown_bin_raises_and_leaves_state_untouched(state):
    with pytest.raises(BinNotFound):
        engine.apply_action(state, dispose_action(bin_id="bin-999"))
    assert state.disposals == []
    assert state.applied_action_ids == []


def test_apply_action_is_pure_and_idempotent(state):
    action = dispose_action(action_id="dispose-fixed-0001")
    first = engine.apply_action(state, action)
    assert state.disposals == []

    replay = engine.apply_action(first.state, action)
    assert replay.skipped is True
    assert replay.state is first.state
    assert len(replay.state.disposals) == 1


def test_jump_between_bins_is_flagged_as_location_anomaly(state):
    first = engine.apply_action(state, dispose_action())
    assert first.state.last_action_by_user["demo-citizen-001"].location == BIN_001

    later = NOW + timedelta(seconds=20)
    jump = dispose_action(
        bin_id="bin-002",
        qr="MMC-BIN-002",
        photo=photo_ref("MMC-BIN-002", start=700),
        location=snapshot(BIN_002, at=later),
        at=later,
    )
    record = engine.apply_action(first.state, jump).state.disposals[0]

    assert record.qr_verified and record.geo_verified
    assert FraudFlag.location_anomaly in record.fraud_flags
    assert record.verified is False
    assert record.points_awarded == 0


def test_rejected_disposal_still_burns_its_photo(state):
    photo = photo_ref("WRONG-CODE")
    rejected = engine.apply_action(state, dispose_action(qr="WRONG-CODE", photo=photo))
    record = rejected.state.disposals[0]
    assert record.verified is False
    assert record.image_hash in rejected.state.used_image_hashes

    later = NOW + timedelta(hours=3)
    retry = engine.apply_action(rejected.state, dispose_action(photo=photo, location=snapshot(at=later), at=later))
    assert FraudFlag.duplicate_image in retry.state.disposals[0].fraud_flags
    assert retry.state.disposals[0].verified is False
    assert retry.state.used_image_hashes.count(record.image_hash) == 1
