"""Domain errors and the standardized error payload."""
from typing import Any


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return payload


class CivicError(Exception):
    """Base class for user-visible failures raised by the engine."""

    code = "CIVIC_ERROR"
    status_code = 400
    default_message = "The action could not be completed."

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return error_response(self.code, self.message, self.details or None)


class PermissionDenied(CivicError):
    code = "PERMISSION_DENIED"
    status_code = 403
    default_message = "Location access is required to continue."


class MockLocationDetected(CivicError):
    code = "MOCK_LOCATION_DETECTED"
    status_code = 422
    default_message = "Fake GPS detected. Action blocked."


class LocationAdvisory(CivicError):
    """Non-fatal capture warning returned alongside a usable snapshot."""

    status_code = 200


class LowAccuracy(LocationAdvisory):
    code = "LOW_ACCURACY"
    default_message = "Move to an open area for better GPS accuracy."


class StaleFix(LocationAdvisory):
    code = "STALE_FIX"
    default_message = "Location fix is too old. Capture GPS again."


class BinNotFound(CivicError):
    code = "BIN_NOT_FOUND"
    status_code = 404
    default_message = "Selected bin not found."


class ComplaintNotFound(CivicError):
    code = "COMPLAINT_NOT_FOUND"
    status_code = 404
    default_message = "Complaint not found."


class RewardNotFound(CivicError):
    code = "REWARD_NOT_FOUND"
    status_code = 404
    default_message = "Reward not found in catalog."


class RedemptionNotFound(CivicError):
    code = "REDEMPTION_NOT_FOUND"
    status_code = 404
    default_message = "Redemption not found."


class AlertNotFound(CivicError):
    code = "FRAUD_ALERT_NOT_FOUND"
    status_code = 404
    default_message = "Fraud alert not found."


class InsufficientPoints(CivicError):
    code = "INSUFFICIENT_POINTS"
    status_code = 409
    default_message = "Redemption blocked: insufficient points."


class InvalidTransition(CivicError):
    code = "INVALID_TRANSITION"
    status_code = 409
    default_message = "The record cannot move to the requested status."


class ValidationFailed(CivicError):
    code = "VALIDATION_FAILED"
    status_code = 422
    default_message = "Validation failed."


class InvalidCredentials(CivicError):
    code = "INVALID_CREDENTIALS"
    status_code = 401
    default_message = "Invalid credentials."


__all__ = [
    "error_response",
    "CivicError",
    "PermissionDenied",
    "MockLocationDetected",
    "LocationAdvisory",
    "LowAccuracy",
    "StaleFix",
    "BinNotFound",
    "ComplaintNotFound",
    "RewardNotFound",
    "RedemptionNotFound",
    "AlertNotFound",
    "InsufficientPoints",
    "InvalidTransition",
    "ValidationFailed",
    "InvalidCredentials",
]
