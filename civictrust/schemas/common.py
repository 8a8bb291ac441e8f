"""Shared value types for locations."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    model_config = ConfigDict(frozen=True)


class LocationStrength(str, Enum):
    strong = "strong"
    medium = "medium"
    weak = "weak"
    none = "none"


class PositionFix(BaseModel):
    """Raw fix as reported by the device location API."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy_meters: float | None = Field(default=None, ge=0)
    timestamp: datetime | None = None
    mocked: bool = False


class LocationSnapshot(BaseModel):
    """Position captured alongside an action; immutable once produced."""

    location: Coordinates
    accuracy_meters: float = Field(ge=0)
    timestamp: datetime
    age_seconds: float = Field(ge=0)
    is_mocked: bool = False
    strength: LocationStrength

    model_config = ConfigDict(frozen=True)


class CapturedLocation(BaseModel):
    """Client-side snapshot without the derived strength."""

    location: Coordinates
    accuracy_meters: float = Field(ge=0)
    timestamp: datetime
    age_seconds: float = Field(default=0, ge=0)
    is_mocked: bool = False


class UserLocationSnapshot(BaseModel):
    location: Coordinates
    accuracy_meters: float
    timestamp: datetime


class LocationAdvisoryRead(BaseModel):
    code: str
    message: str


class SnapshotRead(BaseModel):
    snapshot: LocationSnapshot
    warnings: list[LocationAdvisoryRead] = Field(default_factory=list)


class ActionOutcome(BaseModel):
    """Result of submitting an action: applied now, queued offline, or already applied."""

    status: str = Field(pattern="^(applied|queued|skipped)$")
    action_id: str
    message: str
