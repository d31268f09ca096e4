"""Public schema exports."""

from .auth import AuthStatus, AuthorizationStart, CallbackResponse, TokenResponse

__all__ = [
    "AuthStatus",
    "AuthorizationStart",
    "CallbackResponse",
    "TokenResponse",
]
