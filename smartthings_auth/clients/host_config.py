"""Keep the host application's config file in step with the current access token."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "AccessToken"


class HostConfigSync:
    """Write the access token into the matching ``platforms`` entry of a JSON config.

    Older host setups read ``AccessToken`` straight from their own config, so
    every token update is mirrored there. Failures are logged and never raised.
    """

    def __init__(
        self, config_path: Path, *, platform: str, name: Optional[str] = None
    ) -> None:
        self._config_path = Path(config_path)
        self._platform = platform
        self._name = name

    def sync_access_token(self, access_token: str) -> bool:
        """Return ``True`` when the config file was rewritten."""
        try:
            config = json.loads(self._config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error(
                "Unable to read host config %s: %s", self._config_path, exc
            )
            return False

        entry = self._find_platform_entry(config)
        if entry is None:
            logger.warning(
                "No platform entry %s (name=%s) in host config %s",
                self._platform,
                self._name,
                self._config_path,
            )
            return False

        entry[ACCESS_TOKEN_KEY] = access_token
        try:
            self._config_path.write_text(json.dumps(config, indent=4), encoding="utf-8")
        except OSError as exc:
            logger.error("Error updating host config %s: %s", self._config_path, exc)
            return False

        logger.debug("Updated %s in host config", ACCESS_TOKEN_KEY)
        return True

    def _find_platform_entry(self, config: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(config, dict):
            return None
        for entry in config.get("platforms") or []:
            if not isinstance(entry, dict) or entry.get("platform") != self._platform:
                continue
            if self._name is None or entry.get("name") == self._name:
                return entry
        return None


__all__ = ["HostConfigSync"]
