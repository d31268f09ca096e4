"""Service layer exports."""

from .callback_validator import CallbackValidator, InvalidCallbackError
from .credential_store import (
    CredentialPersistenceError,
    CredentialStore,
    StaleCredentialsError,
)
from .oauth_flow import AuthState, OAuthFlowController, RefreshTokenExpiredError
from .refresh_scheduler import RefreshScheduler, TickAction

__all__ = [
    "AuthState",
    "CallbackValidator",
    "CredentialPersistenceError",
    "CredentialStore",
    "InvalidCallbackError",
    "OAuthFlowController",
    "RefreshScheduler",
    "RefreshTokenExpiredError",
    "StaleCredentialsError",
    "TickAction",
]
