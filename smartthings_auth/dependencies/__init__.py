"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_callback_validator,
    get_credential_store,
    get_host_config_sync,
    get_oauth_client,
    get_oauth_flow_controller,
    get_refresh_scheduler,
)
from .config import get_app_settings

__all__ = [
    "get_app_settings",
    "get_callback_validator",
    "get_credential_store",
    "get_host_config_sync",
    "get_oauth_client",
    "get_oauth_flow_controller",
    "get_refresh_scheduler",
]
