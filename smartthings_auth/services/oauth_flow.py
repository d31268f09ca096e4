"""
Authorization-code flow and token refresh for SmartThings.
"""

from __future__ import annotations

import enum
import logging
from http import HTTPStatus
from typing import Mapping, Optional

from smartthings_auth.clients.smartthings_oauth import (
    SmartThingsOAuthClient,
    TokenExchangeError,
)
from smartthings_auth.models.credentials import CredentialRecord
from smartthings_auth.schemas import CallbackResponse
from smartthings_auth.services.callback_validator import (
    CallbackValidator,
    InvalidCallbackError,
)
from smartthings_auth.services.credential_store import (
    CredentialStore,
    StaleCredentialsError,
)

logger = logging.getLogger(__name__)

SUCCESS_PAGE = (
    "<h1>Authentication successful!</h1>"
    "<p>You can close this window. SmartThings access is now active.</p>"
)
FAILURE_PAGE = "<h1>Authentication failed</h1><p>Please try again.</p>"

_BANNER = "================================================="


class AuthState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_CALLBACK = "awaiting_callback"
    AUTHENTICATED = "authenticated"


class RefreshTokenExpiredError(Exception):
    """Raised when no usable refresh token remains and the user must re-authorize."""


class OAuthFlowController:
    """Drive the credential lifecycle between the user, SmartThings and the store."""

    def __init__(
        self,
        oauth_client: SmartThingsOAuthClient,
        store: CredentialStore,
        validator: CallbackValidator,
    ) -> None:
        self._oauth = oauth_client
        self._store = store
        self._validator = validator
        self._authorization_url: Optional[str] = None
        self._state = (
            AuthState.AUTHENTICATED
            if store.record is not None
            else AuthState.UNAUTHENTICATED
        )

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def authorization_url(self) -> Optional[str]:
        """The outstanding authorization URL, if a flow is in progress."""
        if self._state is AuthState.AWAITING_CALLBACK:
            return self._authorization_url
        return None

    def get_access_token(self) -> Optional[str]:
        return self._store.access_token

    async def initialize(self) -> None:
        """Make sure a usable access token exists, or ask the operator for consent."""
        if self._store.access_token and self._store.is_access_valid():
            self._state = AuthState.AUTHENTICATED
            return

        if self._store.is_refresh_valid():
            try:
                await self.refresh()
            except TokenExchangeError:
                logger.exception("Initial token refresh failed; will retry on schedule")
            return

        if self._store.record is not None:
            await self.reauthorize()
        else:
            self.start_auth_flow()

    def start_auth_flow(self) -> str:
        """Issue a new state nonce and surface the consent URL to the operator."""
        state = self._validator.issue()
        url = self._oauth.build_authorization_url(state=state)
        self._authorization_url = url
        self._state = AuthState.AWAITING_CALLBACK

        logger.warning(_BANNER)
        logger.warning("SmartThings authentication required")
        logger.warning("Please visit this URL to authorize with SmartThings:")
        logger.warning(url)
        logger.warning(_BANNER)
        return url

    async def handle_callback(self, query: Mapping[str, str]) -> CallbackResponse:
        """Complete the authorization redirect and render the result page."""
        try:
            record = await self._complete_callback(query)
        except (InvalidCallbackError, TokenExchangeError, ValueError) as exc:
            logger.error("OAuth callback error: %s", exc)
            return CallbackResponse(
                status_code=int(HTTPStatus.INTERNAL_SERVER_ERROR), body=FAILURE_PAGE
            )

        self._state = AuthState.AUTHENTICATED
        self._authorization_url = None
        logger.info(
            "Successfully authenticated with SmartThings; access token expires at %s",
            record.access_expires_at.isoformat(),
        )
        return CallbackResponse(status_code=int(HTTPStatus.OK), body=SUCCESS_PAGE)

    async def _complete_callback(self, query: Mapping[str, str]) -> CredentialRecord:
        code = query.get("code")
        state = query.get("state")
        if not code or not state:
            # A callback without state still burns the outstanding nonce.
            self._validator.discard()
            raise InvalidCallbackError("Missing code or state parameter")
        if not self._validator.validate(state):
            raise InvalidCallbackError("Invalid state parameter")

        token = await self._oauth.exchange_authorization_code(code)
        return await self._store.update(token.model_dump(exclude_none=True))

    async def refresh(self) -> Optional[CredentialRecord]:
        """Trade the stored refresh token for a new token set.

        Returns ``None`` when the refresh token is gone or expired, in which
        case a new authorization flow has been started instead, or when the
        credentials were cleared while the exchange was in flight.
        """
        try:
            refresh_token = self._require_refresh_token()
        except RefreshTokenExpiredError as exc:
            logger.warning("%s; starting new auth flow", exc)
            await self.reauthorize()
            return None

        generation = self._store.generation
        info = self._store.expiry_info()
        logger.debug(
            "Refreshing tokens - access token expires in %ds, refresh token expires in %dh",
            info.access_expires_in.total_seconds(),
            info.refresh_expires_in.total_seconds() // 3600,
        )

        try:
            token = await self._oauth.refresh_access_token(refresh_token)
        except TokenExchangeError:
            if self._store.generation != generation:
                logger.warning("Credentials were cleared during refresh")
            elif self._store.is_refresh_valid():
                logger.warning("Refresh token is still valid, will retry refresh later")
            else:
                logger.warning("Refresh token is invalid, starting new auth flow")
                await self.reauthorize()
            raise

        try:
            record = await self._store.update(
                token.model_dump(exclude_none=True), generation=generation
            )
        except StaleCredentialsError:
            logger.warning("Credentials were cleared during refresh; discarding new tokens")
            return None

        if self._state is not AuthState.AWAITING_CALLBACK:
            self._state = AuthState.AUTHENTICATED
        logger.info(
            "Successfully refreshed tokens - new access token expires in %ds",
            self._store.expiry_info().access_expires_in.total_seconds(),
        )
        return record

    def _require_refresh_token(self) -> str:
        refresh_token = self._store.refresh_token
        if not refresh_token:
            raise RefreshTokenExpiredError("No refresh token available")
        if not self._store.is_refresh_valid():
            raise RefreshTokenExpiredError("Refresh token has expired")
        return refresh_token

    async def reauthorize(self) -> str:
        """Drop unusable credentials and start over with a fresh consent URL."""
        await self._store.clear()
        return self.start_auth_flow()

    async def reset(self) -> None:
        """Revoke local credentials without starting a new flow."""
        await self._store.clear()
        self._validator.discard()
        self._authorization_url = None
        self._state = AuthState.UNAUTHENTICATED
        logger.info("Stored SmartThings credentials removed")


__all__ = [
    "AuthState",
    "FAILURE_PAGE",
    "OAuthFlowController",
    "RefreshTokenExpiredError",
    "SUCCESS_PAGE",
]
