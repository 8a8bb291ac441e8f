"""Identity: demo credentials, remote sign-in and persisted sessions."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from civictrust.models.auth_session import AuthSession
from civictrust.schemas.auth import DemoRole, IssuedRole, Role, UserProfile
from civictrust.services.remote import RemoteClient
from civictrust.utils.errors import InvalidCredentials, ValidationFailed
from civictrust.utils.time import parse_iso_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DemoCredential:
    email: str
    password: str
    name: str
    ward: str


DEMO_CREDENTIALS: tuple[DemoCredential, ...] = (
    DemoCredential("citizen@maduraimakkal.app", "Citizen@123", "Madurai Citizen", "Ward 12"),
    DemoCredential("worker@maduraimakkal.app", "Worker@123", "Sanitation Worker", "Ward 12"),
    DemoCredential("admin@maduraimakkal.app", "Admin@123", "City Admin", "HQ"),
)


@dataclass(frozen=True)
class LoginResult:
    profile: UserProfile
    session_token: str

    @property
    def role_source(self) -> str:
        return self.profile.role_grant.kind


def normalize_email(value: str) -> str:
    return value.strip().lower()


def demo_role_from_email(email: str) -> Role:
    """Seed-account heuristic; never applied to identities issued remotely."""

    if "admin" in email:
        return Role.admin
    if "worker" in email:
        return Role.worker
    return Role.citizen


def _issued_role(app_metadata: dict[str, Any]) -> Role:
    # Only app_metadata is server-controlled; user_metadata is editable by the user.
    try:
        return Role(app_metadata.get("role") or Role.citizen.value)
    except ValueError:
        logger.warning("Unknown role in identity metadata, defaulting to citizen", extra={"role": app_metadata.get("role")})
        return Role.citizen


def _demo_login(credential: DemoCredential, device_id: str, now: datetime) -> LoginResult:
    role = demo_role_from_email(credential.email)
    profile = UserProfile(
        id=f"demo-{role.value}-001",
        email=credential.email,
        name=credential.name,
        ward=credential.ward,
        device_id=device_id,
        created_at=now,
        role_grant=DemoRole(role=role),
    )
    return LoginResult(profile=profile, session_token=f"demo-session-{secrets.token_hex(8)}")


def _profile_from_remote(data: dict[str, Any], email: str, device_id: str, now: datetime) -> UserProfile:
    user = data.get("user") or {}
    metadata = user.get("user_metadata") or {}
    created = user.get("created_at")
    return UserProfile(
        id=str(user["id"]),
        email=user.get("email") or email,
        name=metadata.get("name") or "Civic User",
        ward=metadata.get("ward") or "Ward 0",
        device_id=metadata.get("device_id") or device_id,
        created_at=parse_iso_utc(created) if created else now,
        role_grant=IssuedRole(role=_issued_role(user.get("app_metadata") or {})),
    )


async def login(
    email: str,
    password: str,
    device_id: str,
    remote: RemoteClient,
    now: datetime | None = None,
) -> LoginResult:
    """Authenticate a user.

    Demo credentials are matched locally and never reach the network.
    """

    normalized = normalize_email(email)
    if not normalized or not password.strip():
        raise ValidationFailed("Email and password are required.")
    now = now or utcnow()

    for credential in DEMO_CREDENTIALS:
        if credential.email == normalized and credential.password == password:
            logger.info("Demo login", extra={"email": normalized})
            return _demo_login(credential, device_id, now)

    data = await remote.sign_in(normalized, password)
    token = data.get("access_token")
    if not token or not data.get("user"):
        raise InvalidCredentials()
    try:
        profile = _profile_from_remote(data, normalized, device_id, now)
    except (KeyError, ValueError) as exc:
        raise InvalidCredentials("Identity response could not be read.") from exc
    logger.info("Remote login", extra={"user_id": profile.id, "role": profile.role.value})
    return LoginResult(profile=profile, session_token=token)


def open_session(db: Session, result: LoginResult) -> AuthSession:
    """Persist the session so later requests resolve the same identity."""

    row = AuthSession(
        token=result.session_token,
        user_id=result.profile.id,
        role=result.profile.role.value,
        role_source=result.role_source,
        profile_json=result.profile.model_dump(mode="json"),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def resolve_session(db: Session, token: str) -> UserProfile | None:
    row = db.scalar(select(AuthSession).where(AuthSession.token == token, AuthSession.revoked_at.is_(None)))
    if row is None:
        return None
    return UserProfile.model_validate(row.profile_json)


def revoke_session(db: Session, token: str) -> bool:
    row = db.scalar(select(AuthSession).where(AuthSession.token == token, AuthSession.revoked_at.is_(None)))
    if row is None:
        return False
    row.revoked_at = utcnow()
    db.commit()
    return True


__all__ = [
    "DEMO_CREDENTIALS",
    "LoginResult",
    "normalize_email",
    "demo_role_from_email",
    "login",
    "open_session",
    "resolve_session",
    "revoke_session",
]
