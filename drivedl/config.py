"""Configuration management for drivedl."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from .exceptions import DriveConfigError
from .utils import DEFAULT_CONCURRENCY

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.googleapis.com/drive/v3"
CONFIG_DIR = Path.home() / ".config" / "drivedl"
CONFIG_FILE = CONFIG_DIR / "config"


class Config:
    """Settings resolved from the environment and the user config file.

    Environment variables win over the config file. The config file holds
    dotenv-style ``KEY=value`` lines.
    """

    def __init__(self, config_file: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_file: Optional path to the config file
                (defaults to ~/.config/drivedl/config)
        """
        self.config_file = config_file or CONFIG_FILE
        self._file_values: Optional[dict[str, str]] = None

    def _load_file(self) -> dict[str, str]:
        """Read the config file once and cache its values."""
        if self._file_values is not None:
            return self._file_values

        values: dict[str, str] = {}
        if self.config_file.exists():
            try:
                parsed = dotenv_values(self.config_file)
            except OSError as e:
                logger.warning(f"Could not read config file {self.config_file}: {e}")
            else:
                values = {k: v for k, v in parsed.items() if v is not None}
        self._file_values = values
        return values

    def _get(self, key: str) -> Optional[str]:
        value = os.environ.get(key)
        if value:
            return value
        return self._load_file().get(key) or None

    @property
    def access_token(self) -> Optional[str]:
        """OAuth access token used as a bearer credential."""
        return self._get("DRIVEDL_ACCESS_TOKEN")

    @property
    def api_url(self) -> str:
        """Base URL of the Drive v3 API."""
        return self._get("DRIVEDL_API_URL") or DEFAULT_API_URL

    @property
    def concurrency(self) -> int:
        """Default number of simultaneous file transfers."""
        raw = self._get("DRIVEDL_CONCURRENCY")
        if raw is None:
            return DEFAULT_CONCURRENCY
        try:
            value = int(raw)
        except ValueError as e:
            raise DriveConfigError(
                f"DRIVEDL_CONCURRENCY must be an integer, got {raw!r}"
            ) from e
        if value < 1:
            raise DriveConfigError("DRIVEDL_CONCURRENCY must be at least 1")
        return value

    def is_configured(self) -> bool:
        """Check whether an access token is available."""
        return self.access_token is not None


config = Config()
