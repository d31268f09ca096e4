"""Operator helpers for the stored SmartThings credentials.

Example usages::

    # Confirm the required settings are present.
    python -m scripts.oauth_admin check --env-file /opt/smartthings/.env

    # Show how long the stored tokens remain usable.
    python -m scripts.oauth_admin status --env-file /opt/smartthings/.env

    # Print a consent URL for the configured client (the server must be running
    # to receive the callback).
    python -m scripts.oauth_admin authorize-url --env-file /opt/smartthings/.env

    # Remove the stored tokens so the next start asks for authorization.
    python -m scripts.oauth_admin reset --env-file /opt/smartthings/.env
"""

from __future__ import annotations

import argparse
import asyncio
import secrets
import sys
from datetime import timedelta
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from smartthings_auth.core.config import (
    AppSettings,
    OAuthSettings,
    SmartThingsSettings,
    StorageSettings,
)
from smartthings_auth.clients.smartthings_oauth import SmartThingsOAuthClient
from smartthings_auth.services.callback_validator import NONCE_BYTES
from smartthings_auth.services.credential_store import CredentialStore

EXIT_OK = 0
EXIT_NOT_AUTHENTICATED = 1
EXIT_VALIDATION_ERROR = 2
EXIT_RUNTIME_ERROR = 5


def _load_settings(env_file: Path) -> AppSettings:
    """Build settings with ``env_file`` as the source for every settings group."""
    return AppSettings(
        _env_file=env_file,  # type: ignore[call-arg]
        smartthings=SmartThingsSettings(_env_file=env_file),  # type: ignore[call-arg]
        oauth=OAuthSettings(_env_file=env_file),  # type: ignore[call-arg]
        storage=StorageSettings(_env_file=env_file),  # type: ignore[call-arg]
    )


def _build_store(settings: AppSettings) -> CredentialStore:
    return CredentialStore(
        settings.storage.token_path,
        refresh_token_lifetime=timedelta(days=settings.oauth.refresh_token_lifetime_days),
        refresh_buffer=timedelta(seconds=settings.oauth.refresh_buffer_seconds),
    )


def _format_remaining(remaining: timedelta) -> str:
    total = int(remaining.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}h {minutes:02d}m {seconds:02d}s"


def _show_status(settings: AppSettings) -> int:
    """Print the expiry of the stored tokens."""
    store = _build_store(settings)
    record = store.load()
    if record is None:
        print(f"No usable tokens stored at {store.path}.")
        return EXIT_NOT_AUTHENTICATED

    info = store.expiry_info()
    print(f"Token file:     {store.path}")
    print(
        f"Access token:   expires {record.access_expires_at.isoformat()} "
        f"(in {_format_remaining(info.access_expires_in)})"
    )
    print(
        f"Refresh token:  expires {record.refresh_expires_at.isoformat()} "
        f"(in {_format_remaining(info.refresh_expires_in)})"
    )
    if record.location_id:
        print(f"Location:       {record.location_id}")

    if not store.is_refresh_valid():
        print("Refresh token is no longer usable; re-authorization required.")
        return EXIT_NOT_AUTHENTICATED
    return EXIT_OK


def _print_authorization_url(settings: AppSettings) -> int:
    """Print a fresh consent URL with a random state value."""
    client = SmartThingsOAuthClient(settings.smartthings, settings.oauth)
    print(client.build_authorization_url(secrets.token_hex(NONCE_BYTES)))
    return EXIT_OK


def _reset(settings: AppSettings) -> int:
    """Delete the stored tokens."""
    store = _build_store(settings)
    asyncio.run(store.clear())
    print(f"Removed stored tokens at {store.path}.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect or reset the stored SmartThings OAuth credentials."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    add_common_arguments(
        subparsers.add_parser("check", help="Validate settings and exit.")
    )
    add_common_arguments(
        subparsers.add_parser("status", help="Show when the stored tokens expire.")
    )
    add_common_arguments(
        subparsers.add_parser(
            "authorize-url", help="Print a SmartThings authorization URL."
        )
    )
    add_common_arguments(
        subparsers.add_parser("reset", help="Delete the stored tokens.")
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "check": lambda: EXIT_OK,
        "status": lambda: _show_status(settings),
        "authorize-url": lambda: _print_authorization_url(settings),
        "reset": lambda: _reset(settings),
    }
    try:
        return handlers[args.command]()
    except OSError as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
