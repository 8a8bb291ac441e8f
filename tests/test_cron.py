from datetime import timedelta

import pytest

from civictrust.core.runtime_state import last_replay_at
from civictrust.schemas.actions import PendingAction, RedeemRewardPayload
from civictrust.schemas.wallet import RedemptionStatus
from civictrust.services import cron
from civictrust.services.dispatcher import Dispatcher
from factories import NOW, dispose_action, photo_ref


@pytest.fixture
def wired(monkeypatch, dispatcher):
    monkeypatch.setattr(cron, "get_dispatcher", lambda: dispatcher)
    return dispatcher


@pytest.mark.anyio
async def test_replay_job_is_idle_without_queue(wired):
    assert await cron.replay_pending_once() == 0


@pytest.mark.anyio
async def test_replay_job_waits_for_connectivity(wired):
    wired.set_connectivity(False)
    wired.run_action(dispose_action())
    assert await cron.replay_pending_once() == 0
    assert len(wired.state.pending_actions) == 1


@pytest.mark.anyio
async def test_replay_job_drains_queue(wired):
    wired.set_connectivity(False)
    wired.run_action(dispose_action())
    wired.set_connectivity(True)

    assert await cron.replay_pending_once() == 1
    assert wired.state.pending_actions == []
    assert wired.state.disposals[0].verified is True
    assert last_replay_at() == NOW.isoformat()


def test_expiry_job_counts_expired_coupons(monkeypatch, store, offline_remote):
    clock = {"now": NOW}
    dispatcher = Dispatcher(store, offline_remote, clock=lambda: clock["now"])
    monkeypatch.setattr(cron, "get_dispatcher", lambda: dispatcher)

    dispatcher.run_action(dispose_action(photo=photo_ref("MMC-BIN-001", start=40)))
    redeem = PendingAction.new(
        RedeemRewardPayload(
            reward_id="MOBILE_RECHARGE_25",
            reward_title="INR25 Mobile Recharge Coupon",
            points_required=50,
            user_id="demo-citizen-001",
            created_at=NOW,
        )
    )
    dispatcher.run_action(redeem)

    assert cron.expire_redemptions_once() == 0
    clock["now"] = NOW + timedelta(days=15)
    assert cron.expire_redemptions_once() == 1
    assert dispatcher.state.redemptions[0].status == RedemptionStatus.expired
