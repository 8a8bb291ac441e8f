"""Full application state, persisted as a single snapshot."""
from pydantic import BaseModel, Field

from .actions import PendingAction
from .bin import Bin
from .common import UserLocationSnapshot
from .complaint import Complaint
from .disposal import DisposalRecord
from .fraud import FraudAlert
from .wallet import RedemptionRecord, WalletState


class AppState(BaseModel):
    is_online: bool = True
    bins: list[Bin] = Field(default_factory=list)
    disposals: list[DisposalRecord] = Field(default_factory=list)
    complaints: list[Complaint] = Field(default_factory=list)
    wallet: WalletState = Field(default_factory=WalletState)
    redemptions: list[RedemptionRecord] = Field(default_factory=list)
    fraud_alerts: list[FraudAlert] = Field(default_factory=list)
    pending_actions: list[PendingAction] = Field(default_factory=list)
    used_image_hashes: list[str] = Field(default_factory=list)
    last_action_by_user: dict[str, UserLocationSnapshot] = Field(default_factory=dict)
    sync_log: list[str] = Field(default_factory=list)
    applied_action_ids: list[str] = Field(default_factory=list)


class SyncStatusRead(BaseModel):
    is_online: bool
    pending_actions: int
    sync_log: list[str]


class ConnectivityUpdate(BaseModel):
    online: bool

