"""Configuration handling for objsync.

Settings are resolved from the environment first and then from the
config file at ``~/.config/objsync/config`` (``KEY=value`` lines).
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "objsync"
CONFIG_FILE_NAME = "config"

URL_KEY = "OBJSYNC_URL"
TOKEN_KEY = "OBJSYNC_TOKEN"
CONFIG_DIR_KEY = "OBJSYNC_CONFIG_DIR"


class Config:
    """Resolves object store settings from environment and config file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ``$OBJSYNC_CONFIG_DIR`` or ``~/.config/objsync``.
        """
        if config_dir is None:
            env_dir = os.environ.get(CONFIG_DIR_KEY)
            config_dir = Path(env_dir) if env_dir else DEFAULT_CONFIG_DIR
        self.config_dir = config_dir

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_dir / CONFIG_FILE_NAME

    def _load_file(self) -> dict[str, str]:
        path = self.get_config_path()
        values: dict[str, str] = {}
        if not path.exists():
            return values

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Could not read config file %s: %s", path, e)
            return values

        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip().strip('"').strip("'")
        return values

    def _get(self, key: str) -> Optional[str]:
        value = os.environ.get(key)
        if value:
            return value
        return self._load_file().get(key) or None

    @property
    def api_url(self) -> Optional[str]:
        """Base URL of the object store (without trailing slash)."""
        url = self._get(URL_KEY)
        return url.rstrip("/") if url else None

    @property
    def token(self) -> Optional[str]:
        """Bearer token used to authenticate, if any."""
        return self._get(TOKEN_KEY)

    def is_configured(self) -> bool:
        """Check whether an object store URL is available."""
        return self.api_url is not None

    def save(self, api_url: str, token: Optional[str] = None) -> Path:
        """Write URL and token to the config file.

        Args:
            api_url: Object store base URL
            token: Optional bearer token

        Returns:
            Path of the written config file
        """
        path = self.get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        values = self._load_file()
        values[URL_KEY] = api_url.rstrip("/")
        if token:
            values[TOKEN_KEY] = token

        content = "".join(f"{key}={value}\n" for key, value in values.items())
        path.write_text(content, encoding="utf-8")
        path.chmod(0o600)
        logger.debug("Saved configuration to %s", path)
        return path


config = Config()
