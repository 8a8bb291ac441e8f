"""Schemas for the bin registry."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .common import Coordinates


class BinStatus(str, Enum):
    available = "available"
    reported_full = "reported_full"
    temporarily_disabled = "temporarily_disabled"


class Bin(BaseModel):
    id: str
    qr_code_id: str
    name: str
    ward: str
    location: Coordinates
    status: BinStatus = BinStatus.available
    last_used_at: datetime | None = None
    created_at: datetime


class BinFullReport(BaseModel):
    reason: str = Field(default="User reported full bin from disposal flow.", max_length=255)
    origin: Coordinates | None = None


class BinFullRead(BaseModel):
    status: str
    action_id: str
    bin: Bin | None = None
    suggested_bin: Bin | None = None
