"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

import pytest

from smartthings_auth.core.config import OAuthSettings, SmartThingsSettings

TOKEN_URL = "https://auth.example.com/oauth/token"
AUTH_URL = "https://auth.example.com/oauth/authorize"


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def smartthings_settings() -> SmartThingsSettings:
    return SmartThingsSettings(
        SMARTTHINGS_CLIENT_ID="client",
        SMARTTHINGS_CLIENT_SECRET="secret",
        SMARTTHINGS_SERVER_URL="https://hub.example.com:8999",
        SMARTTHINGS_AUTH_URL=AUTH_URL,
        SMARTTHINGS_TOKEN_URL=TOKEN_URL,
    )


@pytest.fixture
def oauth_settings() -> OAuthSettings:
    return OAuthSettings()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
