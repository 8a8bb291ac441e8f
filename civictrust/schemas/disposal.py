"""Schemas for waste disposal submissions."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .common import ActionOutcome, CapturedLocation, Coordinates
from .fraud import FraudFlag


class WasteSize(str, Enum):
    large = "large"
    medium = "medium"
    small = "small"
    home_daily = "home_daily"


class ImageValidation(BaseModel):
    quality_passed: bool
    bin_detected: bool
    waste_detected: bool
    confidence: float
    failure_reason: str | None = None


class DisposalCreate(BaseModel):
    bin_id: str = Field(min_length=1)
    qr_code_id: str = Field(min_length=1, max_length=64)
    photo_ref: str = Field(min_length=1, max_length=1024)
    waste_size: WasteSize = WasteSize.medium
    location: CapturedLocation


class DisposalRecord(BaseModel):
    id: str
    user_id: str
    bin_id: str
    qr_code_id: str
    photo_ref: str
    image_hash: str
    location: Coordinates
    accuracy_meters: float
    created_at: datetime
    distance_meters: float
    geo_verified: bool
    qr_verified: bool
    ai_verified: bool
    waste_size: WasteSize
    fraud_flags: list[FraudFlag] = Field(default_factory=list)
    verified: bool
    points_awarded: int = 0
    rejection_reason: str | None = None


class DisposalOutcome(ActionOutcome):
    disposal: DisposalRecord | None = None
