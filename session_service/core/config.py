"""
Application configuration models and helpers.

Centralizes settings management so the HTTP layer, the session lifecycle
services and the operational scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


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


class MisconfiguredError(RuntimeError):
    """Raised when configuration is present but cannot be used."""


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class OAuthProviderSettings(_EnvSettings):
    """Client registration and endpoints of the upstream OAuth2 provider."""

    client_id: str = Field(..., validation_alias="OAUTH_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="OAUTH_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="OAUTH_REDIRECT_URI")
    authorize_url: AnyHttpUrl = Field(
        "https://accounts.spotify.com/authorize",
        validation_alias="OAUTH_AUTHORIZE_URL",
    )
    token_url: AnyHttpUrl = Field(
        "https://accounts.spotify.com/api/token",
        validation_alias="OAUTH_TOKEN_URL",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "user-read-private",
            "user-read-email",
            "user-top-read",
            "user-read-recently-played",
        ),
        validation_alias="OAUTH_SCOPES",
    )
    show_dialog: bool = Field(
        True,
        validation_alias="OAUTH_SHOW_DIALOG",
        description="Force the provider to re-prompt for consent on every login.",
    )
    http_timeout_seconds: float = Field(
        10.0, gt=0, validation_alias="OAUTH_HTTP_TIMEOUT_SECONDS"
    )
    state_ttl_seconds: int = Field(900, gt=0, validation_alias="OAUTH_STATE_TTL")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class SessionSettings(_EnvSettings):
    """Persistence and expiry policy for server-side sessions."""

    store_url: Optional[str] = Field(
        None,
        validation_alias="SESSION_STORE_URL",
        description=(
            "redis://, rediss:// or dynamodb://<table> URL. "
            "Sessions live in process memory when omitted."
        ),
    )
    key_prefix: str = Field("session:", validation_alias="SESSION_KEY_PREFIX")
    ttl_margin_seconds: int = Field(
        60,
        gt=0,
        validation_alias="SESSION_TTL_MARGIN_SECONDS",
        description="Store TTL is the provider lifetime minus this margin.",
    )
    validation_buffer_seconds: int = Field(
        30, gt=0, validation_alias="SESSION_VALIDATION_BUFFER_SECONDS"
    )
    refresh_ttl_seconds: int = Field(
        60 * 60 * 24 * 30,
        ge=0,
        validation_alias="SESSION_REFRESH_TTL_SECONDS",
        description="How long a refresh token outlives an idle session; 0 keeps it forever.",
    )
    cookie_name: str = Field("sessionId", validation_alias="SESSION_COOKIE_NAME")


class SecuritySettings(_EnvSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthProviderSettings = Field(default_factory=OAuthProviderSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "MisconfiguredError",
    "OAuthProviderSettings",
    "SecuritySettings",
    "SessionSettings",
    "get_settings",
]
