"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the refresh scheduler and
the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

TOKEN_FILE_NAME = "smartthings_tokens.json"


class SmartThingsSettings(BaseSettings):
    """Client registration and endpoints for the SmartThings API."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    client_id: str = Field(..., validation_alias="SMARTTHINGS_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="SMARTTHINGS_CLIENT_SECRET")
    server_url: str = Field(
        ...,
        validation_alias="SMARTTHINGS_SERVER_URL",
        description="Public base URL of the webhook server receiving the OAuth redirect.",
    )
    auth_url: str = Field(
        "https://api.smartthings.com/oauth/authorize",
        validation_alias="SMARTTHINGS_AUTH_URL",
    )
    token_url: str = Field(
        "https://api.smartthings.com/oauth/token",
        validation_alias="SMARTTHINGS_TOKEN_URL",
    )

    @field_validator("server_url")
    @classmethod
    def _check_server_url(cls, value: str) -> str:
        """Accept any http(s) base URL but keep it exactly as configured."""
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("SMARTTHINGS_SERVER_URL must be an absolute http(s) URL")
        return value


class OAuthSettings(BaseSettings):
    """OAuth flow and token refresh policy."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("r:devices:*", "x:devices:*", "r:locations:*"),
        validation_alias="OAUTH_SCOPES",
    )
    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    refresh_buffer_seconds: int = Field(
        300,
        validation_alias="OAUTH_REFRESH_BUFFER_SECONDS",
        description="Tokens count as expired this long before their literal expiry.",
    )
    refresh_interval_seconds: float = Field(
        60.0, validation_alias="OAUTH_REFRESH_INTERVAL_SECONDS"
    )
    refresh_token_lifetime_days: int = Field(
        30,
        validation_alias="OAUTH_REFRESH_TOKEN_LIFETIME_DAYS",
        description="The provider does not report refresh token expiry; assume this window.",
    )

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


class StorageSettings(BaseSettings):
    """Where credentials live and which host config receives the access token."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    storage_path: Path = Field(Path("."), validation_alias="TOKEN_STORAGE_PATH")
    host_config_path: Optional[Path] = Field(
        None,
        validation_alias="HOST_CONFIG_PATH",
        description="Optional host config file kept in sync with the access token.",
    )
    host_platform_id: str = Field(
        "HomeBridgeSmartThings", validation_alias="HOST_PLATFORM_ID"
    )
    host_platform_name: Optional[str] = Field(None, validation_alias="HOST_PLATFORM_NAME")

    @property
    def token_path(self) -> Path:
        return self.storage_path / TOKEN_FILE_NAME


class AppSettings(BaseSettings):
    """Root settings object for the application."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    smartthings: SmartThingsSettings = Field(default_factory=SmartThingsSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "SmartThingsSettings",
    "StorageSettings",
    "TOKEN_FILE_NAME",
    "get_settings",
]
