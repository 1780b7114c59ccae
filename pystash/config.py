"""Configuration management for pystash.

Credentials are read from environment variables first and from the config
file (``~/.config/pystash/config``) second. The file holds ``KEY=value``
lines using the same names as the environment variables.
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.stashbusiness.com/"

ENV_API_ID = "STASH_API_ID"
ENV_API_PW = "STASH_API_PW"
ENV_API_URL = "STASH_API_URL"
ENV_PROFILE = "STASH_PROFILE"
ENV_CONFIG_DIR = "STASH_CONFIG_DIR"

CONFIG_KEYS = (ENV_API_ID, ENV_API_PW, ENV_API_URL, ENV_PROFILE)


class Config:
    """Reads and stores STASH API settings."""

    def get_config_dir(self) -> Path:
        """Return the directory holding the config file."""
        override = os.environ.get(ENV_CONFIG_DIR)
        if override:
            return Path(override)
        return Path.home() / ".config" / "pystash"

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.get_config_dir() / "config"

    def _read_file(self) -> dict[str, str]:
        """Parse the config file into a dictionary.

        Unknown keys, blank lines and ``#`` comments are ignored.
        """
        path = self.get_config_path()
        if not path.exists():
            return {}

        values: dict[str, str] = {}
        try:
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    key = key.strip()
                    if key in CONFIG_KEYS:
                        values[key] = value.strip()
        except OSError as e:
            logger.warning(f"Failed to read config file {path}: {e}")
        return values

    def _get(self, key: str) -> Optional[str]:
        value = os.environ.get(key)
        if value:
            return value
        return self._read_file().get(key) or None

    @property
    def api_id(self) -> Optional[str]:
        return self._get(ENV_API_ID)

    @property
    def api_pw(self) -> Optional[str]:
        return self._get(ENV_API_PW)

    @property
    def api_url(self) -> str:
        return self._get(ENV_API_URL) or DEFAULT_BASE_URL

    @property
    def profile(self) -> Optional[str]:
        return self._get(ENV_PROFILE)

    def is_configured(self) -> bool:
        """Check whether both the API ID and API PW are available."""
        return bool(self.api_id and self.api_pw)

    def save_credentials(
        self,
        api_id: str,
        api_pw: str,
        base_url: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> Path:
        """Write credentials to the config file.

        Existing entries for other keys are preserved. The file is created
        with owner-only permissions since it contains the API secret.

        Args:
            api_id: API ID for the account
            api_pw: API PW (shared secret) for the account
            base_url: Optional base URL to store
            profile: Optional deployment profile name to store

        Returns:
            Path of the written config file
        """
        values = self._read_file()
        values[ENV_API_ID] = api_id
        values[ENV_API_PW] = api_pw
        if base_url:
            values[ENV_API_URL] = base_url
        if profile:
            values[ENV_PROFILE] = profile

        path = self.get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            for key in CONFIG_KEYS:
                if key in values:
                    f.write(f"{key}={values[key]}\n")

        logger.debug(f"Saved credentials to {path}")
        return path


config = Config()
