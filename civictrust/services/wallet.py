"""Point accounting rules and the reward catalog."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import timedelta

from civictrust.schemas.disposal import WasteSize
from civictrust.schemas.wallet import RewardCatalogItem, WalletEntry, WalletEntryType
from civictrust.utils.errors import RewardNotFound

FIRST_TIME_USER_BONUS_POINTS = 50
COUPON_VALIDITY = timedelta(days=14)

REGULAR_REWARD_POINTS: dict[WasteSize, int] = {
    WasteSize.large: 20,
    WasteSize.medium: 10,
    WasteSize.small: 3,
    WasteSize.home_daily: 0,
}

REWARD_CATALOG: list[RewardCatalogItem] = [
    RewardCatalogItem(
        id="ELECTRICITY_BILL_50",
        title="INR50 Electricity Bill Coupon",
        points_required=100,
        usage="Electricity bill payment platforms",
    ),
    RewardCatalogItem(
        id="WATER_BILL_30",
        title="INR30 Water Bill Coupon",
        points_required=70,
        usage="Water bill payment platforms",
    ),
    RewardCatalogItem(
        id="MOBILE_RECHARGE_25",
        title="INR25 Mobile Recharge Coupon",
        points_required=50,
        usage="All major recharge apps",
    ),
    RewardCatalogItem(
        id="BUS_PASS_20",
        title="INR20 Public Transport Coupon",
        points_required=40,
        usage="City transport ticketing apps",
    ),
]


def balance(entries: Iterable[WalletEntry]) -> int:
    """Signed fold of the ledger; the balance is never stored on its own."""

    return sum(entry.signed_points for entry in entries)


def points_earned(entries: Iterable[WalletEntry]) -> int:
    return sum(entry.points for entry in entries if entry.type == WalletEntryType.earn)


def get_reward(reward_id: str) -> RewardCatalogItem:
    for item in REWARD_CATALOG:
        if item.id == reward_id:
            return item
    raise RewardNotFound(reward_id=reward_id)


__all__ = [
    "FIRST_TIME_USER_BONUS_POINTS",
    "COUPON_VALIDITY",
    "REGULAR_REWARD_POINTS",
    "REWARD_CATALOG",
    "balance",
    "points_earned",
    "get_reward",
]
