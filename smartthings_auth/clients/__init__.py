"""Expose constructed client wrappers."""

from .host_config import HostConfigSync
from .smartthings_oauth import SmartThingsOAuthClient, TokenExchangeError

__all__ = [
    "HostConfigSync",
    "SmartThingsOAuthClient",
    "TokenExchangeError",
]
