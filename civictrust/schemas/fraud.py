"""Fraud flag and alert schemas."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class FraudFlag(str, Enum):
    duplicate_image = "duplicate_image"
    location_anomaly = "location_anomaly"
    before_after_mismatch = "before_after_mismatch"
    qr_mismatch = "qr_mismatch"
    geo_fence_failure = "geo_fence_failure"
    mock_location_detected = "mock_location_detected"
    cooldown_violation = "cooldown_violation"
    location_accuracy_failure = "location_accuracy_failure"
    timestamp_invalid = "timestamp_invalid"


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class AlertStatus(str, Enum):
    open = "open"
    reviewed = "reviewed"
    blocked = "blocked"


class FraudAlert(BaseModel):
    id: str
    type: FraudFlag
    severity: Severity
    message: str
    action_id: str
    risk_score: int
    status: AlertStatus
    created_at: datetime
