"""
File-backed storage for the SmartThings credential record.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from smartthings_auth.clients.host_config import HostConfigSync
from smartthings_auth.models.credentials import (
    CredentialRecord,
    ExpiryInfo,
    truncate_to_millis,
    utc_now,
)

logger = logging.getLogger(__name__)

_MERGEABLE_FIELDS = (
    "access_token",
    "refresh_token",
    "expires_in",
    "installed_app_id",
    "location_id",
)


class CredentialPersistenceError(Exception):
    """Raised when the token file cannot be written or removed."""


class StaleCredentialsError(Exception):
    """Raised when an update was prepared against credentials that have since been cleared."""


class CredentialStore:
    """Owns the single credential record and its JSON file.

    All mutation goes through :meth:`update` and :meth:`clear`, which share one
    lock so a scheduled refresh and a callback exchange never interleave.
    Validity checks treat a token as expired ``refresh_buffer`` early.
    """

    def __init__(
        self,
        token_path: Path,
        *,
        refresh_token_lifetime: timedelta = timedelta(days=30),
        refresh_buffer: timedelta = timedelta(minutes=5),
        config_sync: Optional[HostConfigSync] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._path = Path(token_path)
        self._refresh_token_lifetime = refresh_token_lifetime
        self._buffer = refresh_buffer
        self._config_sync = config_sync
        self._clock = clock
        self._record: Optional[CredentialRecord] = None
        self._dirty = False
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def buffer(self) -> timedelta:
        return self._buffer

    @property
    def record(self) -> Optional[CredentialRecord]:
        return self._record

    @property
    def access_token(self) -> Optional[str]:
        return self._record.access_token if self._record else None

    @property
    def refresh_token(self) -> Optional[str]:
        return self._record.refresh_token if self._record else None

    @property
    def pending_write(self) -> bool:
        return self._dirty

    @property
    def generation(self) -> int:
        """Bumped by every :meth:`clear`."""
        return self._generation

    def load(self) -> Optional[CredentialRecord]:
        """Read the token file; any failure counts as never having authenticated."""
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            record = CredentialRecord.model_validate(data)
        except FileNotFoundError:
            logger.debug("No stored tokens at %s", self._path)
            self._record = None
            return None
        except (OSError, ValueError, ValidationError) as exc:
            logger.error("Error loading tokens from %s: %s", self._path, exc)
            self._record = None
            return None

        self._record = record
        logger.debug("Loaded existing tokens from storage")
        return record

    async def update(
        self,
        fields: Mapping[str, Any],
        issued_at: Optional[datetime] = None,
        *,
        generation: Optional[int] = None,
    ) -> CredentialRecord:
        """Merge token fields onto the current record and persist the result.

        Expiry instants are always recomputed from ``issued_at``; the refresh
        token is assumed to live for the configured lifetime from that moment.
        When ``generation`` is given and the store has been cleared since it was
        read, the update is rejected with :class:`StaleCredentialsError`.
        """
        async with self._lock:
            if generation is not None and generation != self._generation:
                raise StaleCredentialsError(
                    "Stored credentials were cleared while the update was in progress"
                )
            issued_at = truncate_to_millis(issued_at or self._clock())
            merged: dict[str, Any] = {}
            if self._record is not None:
                merged.update(
                    {name: getattr(self._record, name) for name in _MERGEABLE_FIELDS}
                )
            merged.update(
                {
                    name: fields[name]
                    for name in _MERGEABLE_FIELDS
                    if fields.get(name) is not None
                }
            )
            expires_in = int(merged.get("expires_in") or 0)
            merged["expires_in"] = expires_in
            merged["access_expires_at"] = issued_at + timedelta(seconds=expires_in)
            merged["refresh_expires_at"] = issued_at + self._refresh_token_lifetime

            record = CredentialRecord.model_validate(merged)
            self._record = record
            self._save()

        if self._config_sync is not None:
            self._config_sync.sync_access_token(record.access_token)
        return record

    async def clear(self) -> None:
        """Forget the record and delete the token file."""
        async with self._lock:
            self._record = None
            self._dirty = False
            self._generation += 1
            try:
                self._path.unlink(missing_ok=True)
            except OSError as exc:
                logger.error("Error removing token file %s: %s", self._path, exc)
            else:
                logger.debug("Cleared stored tokens")

    async def flush(self) -> bool:
        """Retry a save that failed earlier. Returns ``True`` once nothing is pending."""
        async with self._lock:
            if self._dirty:
                self._save()
            return not self._dirty

    def is_access_valid(self, now: Optional[datetime] = None) -> bool:
        if self._record is None:
            return False
        return (now or self._clock()) < self._record.access_expires_at - self._buffer

    def is_refresh_valid(self, now: Optional[datetime] = None) -> bool:
        if self._record is None:
            return False
        return (now or self._clock()) < self._record.refresh_expires_at - self._buffer

    def expiry_info(self, now: Optional[datetime] = None) -> ExpiryInfo:
        if self._record is None:
            return ExpiryInfo()
        now = now or self._clock()
        zero = timedelta(0)
        return ExpiryInfo(
            access_expires_in=max(zero, self._record.access_expires_at - now),
            refresh_expires_in=max(zero, self._record.refresh_expires_at - now),
        )

    def _save(self) -> None:
        try:
            self._write(self._record)
        except CredentialPersistenceError as exc:
            self._dirty = True
            logger.error("%s; will retry on the next refresh check", exc)
        else:
            self._dirty = False
            logger.debug("Saved tokens to storage")

    def _write(self, record: Optional[CredentialRecord]) -> None:
        if record is None:
            return
        tmp_path: Optional[str] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent, prefix=".tmp_", suffix=".json", text=True
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record.to_storage(), handle, indent=2)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
            tmp_path = None
        except OSError as exc:
            raise CredentialPersistenceError(
                f"Error saving tokens to {self._path}: {exc}"
            ) from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)


__all__ = ["CredentialPersistenceError", "CredentialStore", "StaleCredentialsError"]
