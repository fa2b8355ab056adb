"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app and the background camera
monitors share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GoogleSettings(BaseSettings):
    """Credentials of the Google Cloud OAuth client used for Nest access."""

    client_id: str = Field(..., validation_alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: str = Field(
        "http://localhost:3000/auth/callback",
        validation_alias="GOOGLE_REDIRECT_URI",
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    scope: str = Field(
        "https://www.googleapis.com/auth/sdm.service",
        validation_alias="OAUTH_SCOPE",
        description="Space separated list of scopes requested at consent time.",
    )
    auth_uri: str = Field(
        "https://accounts.google.com/o/oauth2/auth", validation_alias="OAUTH_AUTH_URI"
    )
    token_uri: str = Field(
        "https://oauth2.googleapis.com/token", validation_alias="OAUTH_TOKEN_URI"
    )
    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")


class MonitorSettings(BaseSettings):
    """Tuning for the per-user camera monitors and their persistence."""

    api_base_url: str = Field(
        "https://smartdevicemanagement.googleapis.com/v1",
        validation_alias="SDM_API_BASE_URL",
    )
    default_project_id: Optional[str] = Field(
        None,
        validation_alias="SDM_DEFAULT_PROJECT_ID",
        description="Device Access project used when a user does not supply one.",
    )
    poll_interval_seconds: float = Field(15.0, validation_alias="MONITOR_POLL_INTERVAL")
    refresh_skew_seconds: int = Field(300, validation_alias="MONITOR_REFRESH_SKEW")
    http_timeout_seconds: float = Field(10.0, validation_alias="HTTP_TIMEOUT_SECONDS")
    user_store_path: str = Field("data/users.db", validation_alias="USER_STORE_PATH")
    save_interval_seconds: float = Field(60.0, validation_alias="USER_SAVE_INTERVAL")
    recent_event_limit: int = Field(50, validation_alias="RECENT_EVENT_LIMIT")

    @field_validator(
        "poll_interval_seconds", "http_timeout_seconds", "save_interval_seconds"
    )
    @classmethod
    def _require_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Interval and timeout values must be positive.")
        return value


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)

    @property
    def token_secret(self) -> str:
        return self.security.token_encryption_secret or self.google.client_secret


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GoogleSettings",
    "MonitorSettings",
    "OAuthSettings",
    "SecuritySettings",
    "get_settings",
]
