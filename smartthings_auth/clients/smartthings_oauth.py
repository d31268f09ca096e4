"""
SmartThings OAuth utilities.

These helpers build the authorization URL and talk to the token endpoint for
the authorization-code and refresh-token grants.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from smartthings_auth.core.config import OAuthSettings, SmartThingsSettings
from smartthings_auth.schemas import TokenResponse

CALLBACK_PATH = "oauth/callback"


class TokenExchangeError(Exception):
    """Raised when the token endpoint cannot be reached or rejects a grant."""


def build_redirect_uri(server_url: str) -> str:
    """Append the callback path to ``server_url`` with exactly one separating slash."""
    return f"{server_url.rstrip('/')}/{CALLBACK_PATH}"


class SmartThingsOAuthClient:
    """Build SmartThings authorization URLs and exchange grants for tokens."""

    def __init__(
        self,
        settings: SmartThingsSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self._settings = settings
        self._oauth = oauth_settings
        self._transport = transport
        self._timeout = timeout

    @property
    def redirect_uri(self) -> str:
        return build_redirect_uri(self._settings.server_url)

    def build_authorization_url(self, state: str) -> str:
        """Construct the SmartThings consent URL."""
        params = {
            "client_id": self._settings.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self._oauth.scopes),
            "state": state,
        }
        return f"{self._settings.auth_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenResponse:
        """Exchange an authorization code for a full token set."""
        token = await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        if not token.refresh_token:
            raise TokenExchangeError("Token endpoint did not return a refresh token.")
        return token

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Obtain a new token set using a stored refresh token."""
        return await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    async def _request_token(self, payload: Dict[str, Any]) -> TokenResponse:
        grant_type = payload["grant_type"]
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._settings.token_url,
                    data=payload,
                    auth=httpx.BasicAuth(
                        self._settings.client_id, self._settings.client_secret
                    ),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            raise TokenExchangeError(
                f"Token request ({grant_type}) failed: {exc!r}"
            ) from exc

        if response.status_code != HTTPStatus.OK:
            raise TokenExchangeError(
                f"Token endpoint rejected {grant_type} grant "
                f"with HTTP {response.status_code}: {response.text}"
            )

        try:
            return TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise TokenExchangeError(
                "Incomplete token payload returned from SmartThings."
            ) from exc


__all__ = [
    "CALLBACK_PATH",
    "SmartThingsOAuthClient",
    "TokenExchangeError",
    "build_redirect_uri",
]
