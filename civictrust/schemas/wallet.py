"""Wallet, reward catalog and redemption schemas."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from .common import ActionOutcome


class WalletEntryType(str, Enum):
    earn = "earn"
    redeem = "redeem"


class WalletSource(str, Enum):
    ai_disposal_verified = "ai_disposal_verified"
    first_time_bonus = "first_time_bonus"
    coupon_redemption = "coupon_redemption"
    manual_adjustment = "manual_adjustment"


class WalletEntry(BaseModel):
    id: str
    type: WalletEntryType
    points: int = Field(ge=0)
    reason: str
    source: WalletSource
    reference_id: str | None = None
    created_at: datetime

    @property
    def signed_points(self) -> int:
        return self.points if self.type == WalletEntryType.earn else -self.points


class WalletState(BaseModel):
    history: list[WalletEntry] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def points(self) -> int:
        return sum(entry.signed_points for entry in self.history)


class RewardCatalogItem(BaseModel):
    id: str
    title: str
    points_required: int = Field(gt=0)
    usage: str


class RedemptionStatus(str, Enum):
    active = "active"
    used = "used"
    expired = "expired"


class RedemptionRecord(BaseModel):
    id: str
    reward_id: str
    reward_title: str
    coupon_code: str
    points_used: int
    created_at: datetime
    expires_at: datetime
    status: RedemptionStatus = RedemptionStatus.active


class WalletRead(BaseModel):
    points: int
    history: list[WalletEntry]


class RedemptionOutcome(ActionOutcome):
    redemption: RedemptionRecord | None = None
    balance: int
