"""Session dependencies and role enforcement."""
from __future__ import annotations

from typing import Callable, Set

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from civictrust.db import get_db
from civictrust.schemas.auth import Role, UserProfile
from civictrust.services.auth import resolve_session
from civictrust.utils.errors import error_response


def _extract_token(
    authorization: str | None = Header(default=None),
    x_session_token: str | None = Header(default=None, alias="X-Session-Token"),
) -> str | None:
    """Read the token from ``Authorization: Bearer ...`` or ``X-Session-Token``."""
    if x_session_token:
        return x_session_token.strip()
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


def require_session(
    db: Session = Depends(get_db),
    token: str | None = Depends(_extract_token),
) -> UserProfile:
    """Resolve the caller's profile from a session opened at login."""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("NO_SESSION", "Session token required."),
        )

    profile = resolve_session(db, token)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("UNAUTHORIZED", "Invalid or revoked session."),
        )
    return profile


def require_role(allowed: Set[Role]) -> Callable:
    """Allow the request only for profiles holding one of ``allowed``."""

    if not allowed:
        raise RuntimeError("require_role needs a non-empty set of Role")

    def _dep(profile: UserProfile = Depends(require_session)) -> UserProfile:
        if profile.role in allowed:
            return profile
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_response(
                "INSUFFICIENT_ROLE",
                f"Requires one of: {sorted(role.value for role in allowed)}",
            ),
        )

    return _dep


__all__ = ["require_session", "require_role"]
