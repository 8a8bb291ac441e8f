"""Wallet, reward catalog and coupon endpoints."""
from fastapi import APIRouter, BackgroundTasks, Depends, Response, status

from civictrust.schemas.actions import PendingAction, RedeemRewardPayload
from civictrust.schemas.auth import Role, UserProfile
from civictrust.schemas.wallet import (
    RedemptionOutcome,
    RedemptionRecord,
    RewardCatalogItem,
    WalletRead,
)
from civictrust.security import require_role, require_session
from civictrust.services.dispatcher import Dispatcher, get_dispatcher, submit_action
from civictrust.services.wallet import REWARD_CATALOG, balance, get_reward
from civictrust.utils.errors import RedemptionNotFound
from civictrust.utils.time import utcnow

router = APIRouter(tags=["wallet"], dependencies=[Depends(require_session)])


@router.get("/wallet", response_model=WalletRead)
def get_wallet(dispatcher: Dispatcher = Depends(get_dispatcher)) -> WalletRead:
    history = dispatcher.state.wallet.history
    return WalletRead(points=balance(history), history=history)


@router.get("/rewards", response_model=list[RewardCatalogItem])
def list_rewards() -> list[RewardCatalogItem]:
    return list(REWARD_CATALOG)


@router.post("/rewards/{reward_id}/redeem", response_model=RedemptionOutcome, status_code=status.HTTP_201_CREATED)
def redeem_reward(
    reward_id: str,
    response: Response,
    background_tasks: BackgroundTasks,
    profile: UserProfile = Depends(require_role({Role.citizen})),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> RedemptionOutcome:
    reward = get_reward(reward_id)
    action = PendingAction.new(
        RedeemRewardPayload(
            reward_id=reward.id,
            reward_title=reward.title,
            points_required=reward.points_required,
            user_id=profile.id,
            created_at=utcnow(),
        )
    )
    result = submit_action(dispatcher, action, background_tasks, profile)
    if result.queued:
        response.status_code = status.HTTP_202_ACCEPTED
    state = dispatcher.state
    return RedemptionOutcome(
        status=result.status,
        action_id=result.action_id,
        message=result.message,
        redemption=next((item for item in state.redemptions if item.id == action.id), None),
        balance=balance(state.wallet.history),
    )


@router.get("/redemptions", response_model=list[RedemptionRecord])
def list_redemptions(dispatcher: Dispatcher = Depends(get_dispatcher)) -> list[RedemptionRecord]:
    return dispatcher.state.redemptions


@router.post(
    "/redemptions/{redemption_id}/use",
    response_model=RedemptionRecord,
    dependencies=[Depends(require_role({Role.citizen}))],
)
def use_redemption(redemption_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)) -> RedemptionRecord:
    state = dispatcher.mark_redemption_used(redemption_id)
    for redemption in state.redemptions:
        if redemption.id == redemption_id:
            return redemption
    raise RedemptionNotFound(redemption_id=redemption_id)
