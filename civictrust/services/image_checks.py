"""Image identity and content validation helpers.

The content validator is a deterministic stand-in for a vision classifier.
Anything registered through ``register_content_validator`` must keep the
same contract: identical inputs give identical results, a confidence score,
independent presence booleans for the bin and the waste, and a readable
failure reason when either is missing.
"""
from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from civictrust.config import get_settings
from civictrust.schemas.disposal import ImageValidation
from civictrust.utils.errors import PermissionDenied, ValidationFailed

logger = logging.getLogger(__name__)

MIN_REFERENCE_LENGTH = 10
BLUR_MODULUS = 17
CONFIDENCE_FLOOR = 0.60
CONFIDENCE_CEILING = 0.98
BIN_DETECTION_THRESHOLD = 0.62
WASTE_DETECTION_THRESHOLD = 0.68

_SCREEN_CAPTURE_MARKERS = ("screenshot", "screenrecord")


def content_hash(reference: str) -> str:
    """Return a stable 16-hex-character token for an image reference."""

    return hashlib.sha256(reference.encode("utf-8")).hexdigest()[:16]


def is_duplicate(used_hashes: Iterable[str], image_hash: str) -> bool:
    return image_hash in set(used_hashes)


def consistency_check(before_ref: str, after_ref: str) -> bool:
    """True when the before and after images are genuinely different."""

    return content_hash(before_ref) != content_hash(after_ref)


@dataclass(frozen=True)
class QualityCheck:
    ok: bool
    reason: str | None = None


def validate_capture_quality(reference: str) -> QualityCheck:
    if not reference or len(reference) < MIN_REFERENCE_LENGTH:
        return QualityCheck(False, "Image capture failed. Please retake.")

    lowered = reference.lower()
    if any(marker in lowered for marker in _SCREEN_CAPTURE_MARKERS):
        return QualityCheck(False, "Screenshot-like image rejected. Use live camera only.")

    # Placeholder blur gate until real sharpness metrics are available.
    if len(reference) % BLUR_MODULUS == 0:
        return QualityCheck(False, "Image is blurry. Please retake.")

    return QualityCheck(True)


def _seed(reference: str, context_id: str) -> int:
    digest = hashlib.sha256(f"{reference}:{context_id}".encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


class ContentValidator(Protocol):
    name: str

    def validate(self, reference: str, context_id: str) -> ImageValidation: ...


class HashContentValidator:
    """Deterministic pseudo-classifier driven by a hash of the inputs."""

    name = "hash"

    def validate(self, reference: str, context_id: str) -> ImageValidation:
        quality = validate_capture_quality(reference)
        if not quality.ok:
            return ImageValidation(
                quality_passed=False,
                bin_detected=False,
                waste_detected=False,
                confidence=0.0,
                failure_reason=quality.reason,
            )

        confidence = CONFIDENCE_FLOOR + (_seed(reference, context_id) % 40) / 100
        bin_detected = confidence > BIN_DETECTION_THRESHOLD
        waste_detected = confidence > WASTE_DETECTION_THRESHOLD

        failure_reason = None
        if not bin_detected:
            failure_reason = "Dustbin not detected."
        elif not waste_detected:
            failure_reason = "Waste not detected."

        return ImageValidation(
            quality_passed=True,
            bin_detected=bin_detected,
            waste_detected=waste_detected,
            confidence=round(min(confidence, CONFIDENCE_CEILING), 2),
            failure_reason=failure_reason,
        )


_VALIDATORS: dict[str, Callable[[], ContentValidator]] = {
    HashContentValidator.name: HashContentValidator,
}


def register_content_validator(name: str, factory: Callable[[], ContentValidator]) -> None:
    """Make a validator selectable through ``CONTENT_VALIDATOR_PROVIDER``."""

    _VALIDATORS[name] = factory


def get_content_validator(name: str | None = None) -> ContentValidator:
    provider = name or get_settings().CONTENT_VALIDATOR_PROVIDER
    factory = _VALIDATORS.get(provider)
    if factory is None:
        raise ValidationFailed(f"Unknown content validator '{provider}'.", provider=provider)
    return factory()


def validate_content(reference: str, context_id: str, validator: ContentValidator | None = None) -> ImageValidation:
    result = (validator or get_content_validator()).validate(reference, context_id)
    if result.failure_reason:
        logger.info(
            "Image content validation failed",
            extra={"context_id": context_id, "reason": result.failure_reason, "confidence": result.confidence},
        )
    return result


class CameraProvider(Protocol):
    """Device camera API. ``take_photo`` returns ``None`` when the user cancels."""

    async def request_permission(self) -> bool: ...

    async def take_photo(self) -> str | None: ...


async def capture_live_photo(camera: CameraProvider) -> str | None:
    if not await camera.request_permission():
        raise PermissionDenied("Camera permission is required for live capture.")
    return await camera.take_photo()


__all__ = [
    "content_hash",
    "is_duplicate",
    "consistency_check",
    "QualityCheck",
    "validate_capture_quality",
    "ContentValidator",
    "HashContentValidator",
    "register_content_validator",
    "get_content_validator",
    "validate_content",
    "CameraProvider",
    "capture_live_photo",
]
