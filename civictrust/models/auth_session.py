"""Authenticated session model."""
from datetime import datetime

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AuthSession(Base):
    """Session token issued at login, carrying the resolved profile."""

    __tablename__ = "auth_sessions"

    token: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    role_source: Mapped[str] = mapped_column(String(20), nullable=False)
    profile_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
