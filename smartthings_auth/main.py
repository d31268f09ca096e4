"""
FastAPI application entrypoint for the SmartThings OAuth webhook server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from smartthings_auth.api.routes import router as api_router
from smartthings_auth.core.config import get_settings
from smartthings_auth.core.logging import configure_logging
from smartthings_auth.dependencies import (
    get_oauth_flow_controller,
    get_refresh_scheduler,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Validate stored credentials on startup and keep them fresh until shutdown."""
    controller = get_oauth_flow_controller()
    scheduler = get_refresh_scheduler()

    await controller.initialize()
    scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="SmartThings OAuth Credential Service",
        version="0.1.0",
        description="Authorization-code flow and token refresh for SmartThings.",
        lifespan=lifespan,
    )
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app", "lifespan"]
