"""Background polling that keeps the SmartThings access token fresh."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from datetime import datetime
from typing import Callable, Optional

from smartthings_auth.clients.smartthings_oauth import TokenExchangeError
from smartthings_auth.models.credentials import utc_now
from smartthings_auth.services.credential_store import CredentialStore
from smartthings_auth.services.oauth_flow import OAuthFlowController

logger = logging.getLogger(__name__)


class TickAction(str, enum.Enum):
    IDLE = "idle"
    NONE = "none"
    REFRESH = "refresh"
    IN_FLIGHT = "in_flight"
    REAUTHORIZE = "reauthorize"


class RefreshScheduler:
    """Poll the credential store and refresh or re-authorize ahead of expiry.

    Polling on a fixed interval survives host sleep and missed ticks. A tick
    never waits for the token exchange; at most one refresh runs at a time.
    """

    def __init__(
        self,
        store: CredentialStore,
        controller: OAuthFlowController,
        *,
        interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._controller = controller
        self._interval = interval_seconds
        self._clock = clock
        self._loop_task: Optional[asyncio.Task[None]] = None
        self._refresh_task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def start(self) -> None:
        """Begin polling on the running event loop."""
        if self.running:
            return
        self._loop_task = asyncio.create_task(
            self._run(), name="smartthings-token-refresh"
        )
        logger.info("Token refresh monitor started (every %ss)", self._interval)

    async def stop(self) -> None:
        """Cancel polling and any refresh in progress."""
        tasks = [t for t in (self._loop_task, self._refresh_task) if t is not None]
        self._loop_task = None
        self._refresh_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if tasks:
            logger.info("Token refresh monitor stopped")

    async def tick(self, now: Optional[datetime] = None) -> TickAction:
        """Evaluate the stored credentials once and act on them."""
        now = now or self._clock()

        if self._store.pending_write:
            await self._store.flush()

        if self._store.record is None:
            return TickAction.IDLE

        if not self._store.is_refresh_valid(now):
            logger.warning("Refresh token is about to expire, starting new auth flow")
            await self._cancel_refresh()
            await self._controller.reauthorize()
            return TickAction.REAUTHORIZE

        if not self._store.is_access_valid(now):
            if self.refresh_in_flight:
                logger.debug("Token refresh already in progress")
                return TickAction.IN_FLIGHT
            logger.debug("Access token is about to expire, refreshing tokens")
            self._refresh_task = asyncio.create_task(self._refresh())
            return TickAction.REFRESH

        return TickAction.NONE

    async def wait_for_refresh(self) -> None:
        """Block until the in-flight refresh, if any, has finished."""
        if self._refresh_task is not None:
            await asyncio.shield(self._refresh_task)

    async def _cancel_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Cancelled in-flight token refresh")

    async def _refresh(self) -> None:
        try:
            await self._controller.refresh()
        except TokenExchangeError as exc:
            logger.error("Failed to refresh tokens: %s", exc)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected error while refreshing tokens")

    async def _run(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception:  # pylint: disable=broad-except
                logger.exception("Token refresh check failed")
            await asyncio.sleep(self._interval)


__all__ = ["RefreshScheduler", "TickAction"]
