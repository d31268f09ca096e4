"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """Token endpoint payload returned for both code and refresh grants."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = Field(
        None, description="Omitted by some refresh responses; the stored token stays in use."
    )
    expires_in: int = Field(..., gt=0, description="Access token lifetime in seconds.")
    installed_app_id: Optional[str] = None
    location_id: Optional[str] = None


class CallbackResponse(BaseModel):
    """HTTP response handed back to the webhook server after a callback."""

    status_code: int
    body: str
    media_type: str = "text/html"


class AuthorizationStart(BaseModel):
    """Returned when an operator requests a new authorization URL."""

    authorization_url: str


class AuthStatus(BaseModel):
    """Snapshot of the credential lifecycle for operators."""

    state: str
    authenticated: bool
    access_expires_in_seconds: int = 0
    refresh_expires_in_seconds: int = 0
    authorization_url: Optional[str] = Field(
        None, description="Outstanding authorization URL while awaiting the callback."
    )


__all__ = ["AuthStatus", "AuthorizationStart", "CallbackResponse", "TokenResponse"]
