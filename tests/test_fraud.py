from datetime import timedelta

import pytest

from civictrust.schemas.common import Coordinates, UserLocationSnapshot
from civictrust.schemas.disposal import DisposalRecord, WasteSize
from civictrust.schemas.fraud import AlertStatus, FraudFlag, Severity
from civictrust.services import fraud
from factories import BIN_001, BIN_002, NOW, snapshot


def _disposal(user_id: str, bin_id: str, minutes_ago: int, verified: bool = False) -> DisposalRecord:
    return DisposalRecord(
        id=f"dispose-{bin_id}-{minutes_ago}",
        user_id=user_id,
        bin_id=bin_id,
        qr_code_id="MMC-BIN-001",
        photo_ref="file:///captures/old.jpg",
        image_hash="0" * 16,
        location=BIN_001,
        accuracy_meters=4.0,
        created_at=NOW - timedelta(minutes=minutes_ago),
        distance_meters=0.0,
        geo_verified=verified,
        qr_verified=True,
        ai_verified=verified,
        waste_size=WasteSize.small,
        verified=verified,
    )


def test_risk_score_is_sum_of_weights():
    assert fraud.risk_score([]) == 0
    assert fraud.risk_score([FraudFlag.qr_mismatch]) == 20
    assert fraud.risk_score([FraudFlag.qr_mismatch, FraudFlag.geo_fence_failure, FraudFlag.duplicate_image]) == 110


@pytest.mark.parametrize(("score", "expected"), [(0, AlertStatus.open), (79, AlertStatus.open), (80, AlertStatus.blocked)])
def test_alert_status_blocks_at_threshold(score, expected):
    assert fraud.alert_status(score) == expected


def test_severity_by_flag():
    assert fraud.severity_for(FraudFlag.duplicate_image) == Severity.high
    assert fraud.severity_for(FraudFlag.mock_location_detected) == Severity.high
    assert fraud.severity_for(FraudFlag.qr_mismatch) == Severity.medium
    assert fraud.severity_for(FraudFlag.cooldown_violation) == Severity.medium


def test_location_anomaly_on_impossible_travel():
    previous = UserLocationSnapshot(location=BIN_001, accuracy_meters=4.0, timestamp=NOW - timedelta(seconds=30))
    # ~2.1 km in 30 s
    assert fraud.is_location_anomaly(previous, BIN_002, NOW)
    assert not fraud.is_location_anomaly(previous, BIN_001, NOW)
    assert not fraud.is_location_anomaly(None, BIN_002, NOW)


def test_location_anomaly_on_large_jump_even_when_slow():
    previous = UserLocationSnapshot(location=BIN_001, accuracy_meters=4.0, timestamp=NOW - timedelta(hours=5))
    assert fraud.is_location_anomaly(previous, BIN_002, NOW)
    nearby = Coordinates(latitude=9.9200, longitude=78.1194)
    assert not fraud.is_location_anomaly(previous, nearby, NOW)


def test_cooldown_window_is_two_hours_per_user_and_bin():
    disposals = [_disposal("u1", "bin-001", minutes_ago=90)]
    assert fraud.has_cooldown_violation(disposals, "u1", "bin-001", NOW)
    assert not fraud.has_cooldown_violation(disposals, "u2", "bin-001", NOW)
    assert not fraud.has_cooldown_violation(disposals, "u1", "bin-002", NOW)
    assert not fraud.has_cooldown_violation([_disposal("u1", "bin-001", minutes_ago=120)], "u1", "bin-001", NOW)


def test_disposal_flags_keep_rule_order():
    checks = fraud.LocationChecks.of(snapshot(accuracy=25.0, age=45.0, mocked=True))
    flags = fraud.disposal_flags(
        qr_verified=False,
        geo_verified=False,
        location=checks,
        duplicate=True,
        anomaly=False,
        cooldown=True,
    )
    assert flags == [
        FraudFlag.qr_mismatch,
        FraudFlag.geo_fence_failure,
        FraudFlag.mock_location_detected,
        FraudFlag.duplicate_image,
        FraudFlag.cooldown_violation,
        FraudFlag.location_accuracy_failure,
        FraudFlag.timestamp_invalid,
    ]


def test_clean_snapshot_raises_no_report_flags():
    flags = fraud.report_flags(location=fraud.LocationChecks.of(snapshot()), duplicate=False, anomaly=False)
    assert flags == []


def test_build_alerts_share_the_combined_score():
    flags = [FraudFlag.qr_mismatch, FraudFlag.geo_fence_failure, FraudFlag.duplicate_image]
    alerts = fraud.build_alerts("dispose-1", flags, fraud.DISPOSAL_MESSAGES, NOW)
    assert [alert.id for alert in alerts] == [
        "fraud-dispose-1-qr_mismatch",
        "fraud-dispose-1-geo_fence_failure",
        "fraud-dispose-1-duplicate_image",
    ]
    assert {alert.risk_score for alert in alerts} == {110}
    assert {alert.status for alert in alerts} == {AlertStatus.blocked}
    assert alerts[0].message == "QR does not match selected bin."
    assert fraud.build_alerts("dispose-2", [], fraud.DISPOSAL_MESSAGES, NOW) == []
