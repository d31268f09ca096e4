"""Single-use CSRF state values for the authorization redirect."""

from __future__ import annotations

import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from smartthings_auth.models.credentials import utc_now

logger = logging.getLogger(__name__)

NONCE_BYTES = 32


class InvalidCallbackError(Exception):
    """Raised when a callback is missing parameters or carries an unknown state."""


class CallbackValidator:
    """Issue one outstanding state nonce at a time and check it exactly once."""

    def __init__(
        self,
        *,
        ttl_seconds: int = 900,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._pending: Optional[str] = None
        self._issued_at: Optional[datetime] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def issue(self) -> str:
        """Create a fresh nonce, replacing any outstanding one."""
        self._pending = secrets.token_hex(NONCE_BYTES)
        self._issued_at = self._clock()
        return self._pending

    def validate(self, supplied: Optional[str]) -> bool:
        """Consume the pending nonce and report whether ``supplied`` matched it."""
        pending, issued_at = self._pending, self._issued_at
        self.discard()

        if pending is None or issued_at is None or not supplied:
            return False
        if self._clock() - issued_at > self._ttl:
            logger.warning("OAuth state expired before the callback arrived")
            return False
        return hmac.compare_digest(supplied.encode("utf-8"), pending.encode("utf-8"))

    def discard(self) -> None:
        self._pending = None
        self._issued_at = None


__all__ = ["CallbackValidator", "InvalidCallbackError", "NONCE_BYTES"]
