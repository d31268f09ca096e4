"""
Domain models for persisted SmartThings credentials.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MILLISECOND = timedelta(milliseconds=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision so the value survives an epoch-ms round trip."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def to_epoch_millis(value: datetime) -> int:
    return (truncate_to_millis(value) - EPOCH) // _MILLISECOND


def from_epoch_millis(value: int) -> datetime:
    return EPOCH + timedelta(milliseconds=value)


class CredentialRecord(BaseModel):
    """A complete token set as written to ``smartthings_tokens.json``.

    Instances are immutable; the credential store swaps whole records.
    Expiry instants are stored as epoch milliseconds under the keys used by
    earlier releases of the token file.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_in: int = Field(..., ge=0, description="Access token lifetime in seconds.")
    access_expires_at: datetime = Field(..., alias="expires_at")
    refresh_expires_at: datetime = Field(..., alias="refresh_token_expires_at")
    installed_app_id: Optional[str] = None
    location_id: Optional[str] = None

    @field_validator("access_expires_at", "refresh_expires_at", mode="before")
    @classmethod
    def _parse_instant(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return from_epoch_millis(int(value))
        return value

    @field_validator("access_expires_at", "refresh_expires_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        return truncate_to_millis(value)

    @field_serializer("access_expires_at", "refresh_expires_at")
    def _serialize_instant(self, value: datetime) -> int:
        return to_epoch_millis(value)

    def to_storage(self) -> dict[str, Any]:
        """Return the JSON-compatible document persisted on disk."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ExpiryInfo(BaseModel):
    """Remaining lifetime of both tokens, clamped at zero."""

    access_expires_in: timedelta = timedelta(0)
    refresh_expires_in: timedelta = timedelta(0)


__all__ = [
    "CredentialRecord",
    "ExpiryInfo",
    "from_epoch_millis",
    "to_epoch_millis",
    "truncate_to_millis",
    "utc_now",
]
