"""Serialized action descriptors processed by the decision engine."""
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from civictrust.utils.ids import generate_coupon_code, make_id
from civictrust.utils.time import utcnow

from .common import Coordinates, LocationSnapshot
from .complaint import IssueCategory
from .disposal import WasteSize


class ActionType(str, Enum):
    dispose = "dispose"
    report_issue = "report_issue"
    submit_cleanup = "submit_cleanup"
    verify_cleanup = "verify_cleanup"
    redeem_reward = "redeem_reward"
    report_bin_full = "report_bin_full"


class DisposePayload(BaseModel):
    kind: Literal["dispose"] = "dispose"
    bin_id: str
    qr_code_id: str
    photo_ref: str
    waste_size: WasteSize
    location: LocationSnapshot
    user_id: str
    created_at: datetime


class ReportIssuePayload(BaseModel):
    kind: Literal["report_issue"] = "report_issue"
    category: IssueCategory
    description: str
    photo_ref: str
    location: LocationSnapshot
    user_id: str
    created_at: datetime


class SubmitCleanupPayload(BaseModel):
    kind: Literal["submit_cleanup"] = "submit_cleanup"
    complaint_id: str
    photo_ref: str
    location: LocationSnapshot
    user_id: str
    created_at: datetime


class VerifyCleanupPayload(BaseModel):
    kind: Literal["verify_cleanup"] = "verify_cleanup"
    complaint_id: str
    accepted: bool
    notes: str | None = None
    verified_by: str
    created_at: datetime


class RedeemRewardPayload(BaseModel):
    kind: Literal["redeem_reward"] = "redeem_reward"
    reward_id: str
    reward_title: str
    points_required: int = Field(gt=0)
    # Generated when the action is created so that replays mint the same coupon.
    coupon_code: str = Field(default_factory=generate_coupon_code)
    user_id: str
    created_at: datetime


class ReportBinFullPayload(BaseModel):
    kind: Literal["report_bin_full"] = "report_bin_full"
    bin_id: str
    reason: str
    origin: Coordinates | None = None
    user_id: str
    created_at: datetime


ActionPayload = Annotated[
    Union[
        DisposePayload,
        ReportIssuePayload,
        SubmitCleanupPayload,
        VerifyCleanupPayload,
        RedeemRewardPayload,
        ReportBinFullPayload,
    ],
    Field(discriminator="kind"),
]

_ID_PREFIXES = {
    ActionType.dispose: "dispose",
    ActionType.report_issue: "complaint",
    ActionType.submit_cleanup: "cleanup",
    ActionType.verify_cleanup: "verify",
    ActionType.redeem_reward: "redeem",
    ActionType.report_bin_full: "binfull",
}


class PendingAction(BaseModel):
    id: str
    created_at: datetime
    payload: ActionPayload

    @property
    def type(self) -> ActionType:
        return ActionType(self.payload.kind)

    @classmethod
    def new(cls, payload: ActionPayload) -> "PendingAction":
        prefix = _ID_PREFIXES[ActionType(payload.kind)]
        return cls(id=make_id(prefix), created_at=utcnow(), payload=payload)
