"""Identifier helpers."""
import secrets
import string
from uuid import uuid4

COUPON_PREFIX = "CLEANMADURAI"
_COUPON_ALPHABET = string.ascii_uppercase + string.digits


def make_id(prefix: str) -> str:
    """Return a prefixed, collision-resistant identifier such as ``dispose-3f9a1c2b7d10``."""

    return f"{prefix}-{uuid4().hex[:12]}"


def _segment(length: int = 4) -> str:
    return "".join(secrets.choice(_COUPON_ALPHABET) for _ in range(length))


def generate_coupon_code() -> str:
    """Return a coupon code in the ``CLEANMADURAI-XXXX-XXXX`` format."""

    return f"{COUPON_PREFIX}-{_segment()}-{_segment()}"


__all__ = ["make_id", "generate_coupon_code", "COUPON_PREFIX"]
