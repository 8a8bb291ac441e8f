"""Schemas for complaints and cleanup proofs."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .common import ActionOutcome, CapturedLocation, Coordinates
from .fraud import FraudFlag


class IssueCategory(str, Enum):
    roadside_dumping = "roadside_dumping"
    overflowing_bin = "overflowing_bin"
    open_garbage_heap = "open_garbage_heap"
    blocked_drain = "blocked_drain"
    public_area_unclean = "public_area_unclean"


class ComplaintStatus(str, Enum):
    open = "open"
    assigned = "assigned"
    in_progress = "in_progress"
    resolved = "resolved"


class CleanupProof(BaseModel):
    id: str
    submitted_by: str
    photo_ref: str
    image_hash: str
    location: Coordinates
    accuracy_meters: float
    created_at: datetime
    watermark: str
    distance_from_complaint_meters: float
    ai_clean_verified: bool
    fraud_flags: list[FraudFlag] = Field(default_factory=list)


class CleanupVerification(BaseModel):
    verified_by: str
    accepted: bool
    notes: str | None = None
    verified_at: datetime


class Complaint(BaseModel):
    id: str
    user_id: str
    category: IssueCategory
    description: str
    photo_ref: str
    image_hash: str
    location: Coordinates
    created_at: datetime
    status: ComplaintStatus = ComplaintStatus.open
    report_fraud_flags: list[FraudFlag] = Field(default_factory=list)
    cleanup_proof: CleanupProof | None = None
    resolved_at: datetime | None = None
    verification: CleanupVerification | None = None


class ComplaintCreate(BaseModel):
    category: IssueCategory
    description: str = Field(min_length=1, max_length=2000)
    photo_ref: str = Field(min_length=1, max_length=1024)
    location: CapturedLocation


class CleanupCreate(BaseModel):
    photo_ref: str = Field(min_length=1, max_length=1024)
    location: CapturedLocation


class CleanupDecision(BaseModel):
    decision: str = Field(
        pattern="^(accept|accepted|approve|reject|rejected)$",
        description="Decision outcome",
    )
    notes: str | None = None

    @property
    def accepted(self) -> bool:
        return self.decision in {"accept", "accepted", "approve"}


class ComplaintOutcome(ActionOutcome):
    complaint: Complaint | None = None
