"""
Factory functions to provide the shared credential components.

Each component is created once per process so the route handlers, the
refresh scheduler and the lifespan hooks all see the same state.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from smartthings_auth.clients import HostConfigSync, SmartThingsOAuthClient
from smartthings_auth.dependencies.config import get_app_settings
from smartthings_auth.services import (
    CallbackValidator,
    CredentialStore,
    OAuthFlowController,
    RefreshScheduler,
)


@lru_cache()
def get_host_config_sync() -> Optional[HostConfigSync]:
    """Provide the host config mirror when a config path is configured."""
    storage = get_app_settings().storage
    if storage.host_config_path is None:
        return None
    return HostConfigSync(
        storage.host_config_path,
        platform=storage.host_platform_id,
        name=storage.host_platform_name,
    )


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Create the credential store and load any persisted tokens."""
    settings = get_app_settings()
    store = CredentialStore(
        settings.storage.token_path,
        refresh_token_lifetime=timedelta(days=settings.oauth.refresh_token_lifetime_days),
        refresh_buffer=timedelta(seconds=settings.oauth.refresh_buffer_seconds),
        config_sync=get_host_config_sync(),
    )
    store.load()
    return store


@lru_cache()
def get_oauth_client() -> SmartThingsOAuthClient:
    """Create a singleton SmartThings OAuth client."""
    settings = get_app_settings()
    return SmartThingsOAuthClient(settings.smartthings, settings.oauth)


@lru_cache()
def get_callback_validator() -> CallbackValidator:
    settings = get_app_settings()
    return CallbackValidator(ttl_seconds=settings.oauth.state_ttl_seconds)


@lru_cache()
def get_oauth_flow_controller() -> OAuthFlowController:
    """Provide the controller that owns the authorization flow."""
    return OAuthFlowController(
        oauth_client=get_oauth_client(),
        store=get_credential_store(),
        validator=get_callback_validator(),
    )


@lru_cache()
def get_refresh_scheduler() -> RefreshScheduler:
    settings = get_app_settings()
    return RefreshScheduler(
        get_credential_store(),
        get_oauth_flow_controller(),
        interval_seconds=settings.oauth.refresh_interval_seconds,
    )


__all__ = [
    "get_callback_validator",
    "get_credential_store",
    "get_host_config_sync",
    "get_oauth_client",
    "get_oauth_flow_controller",
    "get_refresh_scheduler",
]
