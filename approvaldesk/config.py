"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "test" | "staging" | "prod"
ENV = os.getenv("APP_ENV", "dev").lower()

# Trusted identity headers written by the authenticating gateway.
ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_EMAIL_HEADER = "X-Actor-Email"
ACTOR_ROLE_HEADER = "X-Actor-Role"


class Settings(BaseSettings):
    """Environment configuration for the approval desk backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///approvaldesk.db"
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = False
    ALLOW_DB_CREATE_ALL: bool = False

    # --- Audit trail -----------------------------------------------------
    AUDIT_RETRY_ENABLED: bool = True
    AUDIT_RETRY_INTERVAL_SECONDS: int = Field(default=30, ge=1)
    RECENT_ACTIVITY_HOURS: int = Field(default=24, ge=1)

    # --- Exports ---------------------------------------------------------
    EXPORT_ID_DISPLAY_LENGTH: int = Field(default=8, ge=1)
    EXPORT_PDF_TITLE: str = "Audit Report"

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("SENTRY_DSN")
    @classmethod
    def _strip_empty_dsn(cls, value: str | None) -> str | None:
        """Normalise empty DSNs to ``None`` so the integration stays off."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


class AppInfo(BaseModel):
    name: str = "approvaldesk"
    version: str = "0.1.0"


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()


__all__ = [
    "ENV",
    "ACTOR_ID_HEADER",
    "ACTOR_EMAIL_HEADER",
    "ACTOR_ROLE_HEADER",
    "Settings",
    "AppInfo",
    "get_settings",
]
