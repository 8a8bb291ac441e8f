"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "staging" | "prod"
ENV = os.getenv("APP_ENV", "dev").lower()


class Settings(BaseSettings):
    """Environment configuration for the civictrust service."""

    APP_ENV: str = ENV
    DATABASE_URL: str = "sqlite:///civictrust.db"
    STATE_STORAGE_KEY: str = "madurai_makkal_connect_v2"
    LOG_LEVEL: str = "INFO"

    CORS_ALLOW_ORIGINS: list[str] = [
        "http://localhost:8081",
        "http://localhost:19006",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = False

    # --- Remote collaborator (PostgREST / GoTrue) ------------------------
    REMOTE_SYNC_ENABLED: bool = False
    SUPABASE_URL: str | None = None
    SUPABASE_ANON_KEY: str | None = None
    REMOTE_TIMEOUT_SECONDS: float = 8.0

    # --- Content validation ----------------------------------------------
    CONTENT_VALIDATOR_PROVIDER: str = "hash"

    # --- Scheduler -------------------------------------------------------
    SCHEDULER_ENABLED: bool = False
    REPLAY_INTERVAL_SECONDS: int = 30
    EXPIRY_INTERVAL_SECONDS: int = 3600

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("SUPABASE_URL", "SUPABASE_ANON_KEY", "SENTRY_DSN")
    @classmethod
    def _strip_empty(cls, value: str | None) -> str | None:
        """Normalise empty strings to ``None``."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @property
    def remote_configured(self) -> bool:
        return bool(self.REMOTE_SYNC_ENABLED and self.SUPABASE_URL and self.SUPABASE_ANON_KEY)


class AppInfo(BaseModel):
    name: str = "civictrust"
    version: str = "0.1.0"


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()


__all__ = [
    "ENV",
    "Settings",
    "AppInfo",
    "get_settings",
]
