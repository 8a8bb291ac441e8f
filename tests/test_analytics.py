from datetime import timedelta

from civictrust.schemas.actions import PendingAction, RedeemRewardPayload, VerifyCleanupPayload
from civictrust.services import engine
from civictrust.services.analytics import AnalyticsPeriod, build_analytics, period_start
from civictrust.utils.geo import hotspot_key
from factories import BIN_001, BIN_002, NOW, cleanup_action, dispose_action, photo_ref, report_action


def _snapshot_of(state, **kwargs):
    return build_analytics(
        state.disposals,
        state.complaints,
        state.bins,
        state.wallet.history,
        state.redemptions,
        **kwargs,
    )


def test_empty_state_has_zero_rates(state):
    snapshot = _snapshot_of(state)
    assert snapshot.total_disposals == 0
    assert snapshot.verification_rate == 0.0
    assert snapshot.avg_resolution_hours == 0.0
    assert snapshot.hotspots == []
    assert [row.total_disposals for row in snapshot.bin_usage] == [0, 0, 0, 0, 0]


def test_aggregates_over_mixed_activity(state):
    state = engine.apply_action(state, dispose_action()).state
    state = engine.apply_action(
        state,
        dispose_action(
            qr="WRONG-CODE",
            photo=photo_ref("WRONG-CODE", start=900),
            user_id="citizen-2",
        ),
    ).state
    reported = engine.apply_action(state, report_action(user_id="citizen-3"))
    state = reported.state
    state = engine.apply_action(state, cleanup_action(reported.record_id)).state
    verify = VerifyCleanupPayload(
        complaint_id=reported.record_id,
        accepted=True,
        verified_by="demo-admin-001",
        created_at=NOW + timedelta(hours=3),
    )
    state = engine.apply_action(state, PendingAction.new(verify)).state
    state = engine.apply_action(state, report_action(photo="file:///captures/complaint-0002.jpg", user_id="citizen-4")).state

    snapshot = _snapshot_of(state)

    assert snapshot.total_disposals == 2
    assert snapshot.verified_disposals == 1
    assert snapshot.verification_rate == 50.0
    assert snapshot.total_complaints == 2
    assert snapshot.resolved_complaints == 1
    assert snapshot.open_complaints == 1
    assert snapshot.avg_resolution_hours == 3.0
    assert snapshot.active_users == 4
    assert snapshot.total_rewards_distributed == 60
    assert snapshot.total_redemptions == 0

    assert snapshot.bin_usage[0].bin_id == "bin-001"
    assert snapshot.bin_usage[0].total_disposals == 2
    assert snapshot.bin_usage[0].verified_disposals == 2

    hotspots = {row.zone: row.issue_count for row in snapshot.hotspots}
    assert hotspots == {hotspot_key(BIN_001): 1, hotspot_key(BIN_002): 1}


def test_hotspot_limit(state):
    state = engine.apply_action(state, report_action()).state
    state = engine.apply_action(state, report_action(photo="file:///captures/complaint-0009.jpg", user_id="other")).state
    snapshot = _snapshot_of(state, hotspot_limit=1)
    assert snapshot.hotspots[0].issue_count == 2
    assert len(snapshot.hotspots) == 1


def test_since_filters_by_creation_time(state):
    state = engine.apply_action(state, dispose_action(at=NOW - timedelta(days=10))).state
    snapshot = _snapshot_of(state, since=period_start(AnalyticsPeriod.last_7_days, NOW))
    assert snapshot.total_disposals == 0
    assert _snapshot_of(state, since=period_start(AnalyticsPeriod.last_30_days, NOW)).total_disposals == 1


def test_period_start():
    assert period_start(AnalyticsPeriod.all, NOW) is None
    assert period_start(AnalyticsPeriod.today, NOW) == NOW.replace(hour=0, minute=0)
    assert period_start(AnalyticsPeriod.last_7_days, NOW) == NOW - timedelta(days=7)


def test_since_also_bounds_rewards_and_redemptions(state):
    state = engine.apply_action(state, dispose_action()).state
    redeem = PendingAction.new(
        RedeemRewardPayload(
            reward_id="MOBILE_RECHARGE_25",
            reward_title="INR25 Mobile Recharge Coupon",
            points_required=50,
            user_id="demo-citizen-001",
            created_at=NOW,
        )
    )
    state = engine.apply_action(state, redeem).state

    everything = _snapshot_of(state)
    assert everything.total_rewards_distributed == 60
    assert everything.total_redemptions == 1

    tomorrow = _snapshot_of(state, since=NOW + timedelta(days=1))
    assert tomorrow.total_disposals == 0
    assert tomorrow.total_rewards_distributed == 0
    assert tomorrow.total_redemptions == 0
