from __future__ import annotations
from pathlib import Path
import fcntl
import os
from typing import Any, Dict
import yaml

from modstream.configuration.ai_settings import AISettings
from modstream.configuration.twitch_settings import TwitchSettings
from modstream.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

# Secrets that may be supplied through the environment (or a .env file)
# instead of being written into the YAML file.
ENV_OVERRIDES = {
    ("ai_settings", "api_key"): "OPENAI_API_KEY",
    ("twitch", "client_id"): "TWITCH_CLIENT_ID",
    ("twitch", "access_token"): "TWITCH_ACCESS_TOKEN",
}


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml``, exposes dictionary-like
    access helpers, and resolves model and Twitch settings through
    :class:`AISettings` and :class:`TwitchSettings`. Uses fcntl file locks for
    safe concurrent access across processes.
    """

    def __init__(self, config_path: Path = CONFIG_PATH) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        if not isinstance(section, dict):
            section = {}
        section = dict(section)
        for (section_name, key), env_var in ENV_OVERRIDES.items():
            if section_name == name and os.getenv(env_var):
                section[key] = os.getenv(env_var)
        return section

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache (shallow reference). Callers
        should not mutate it; use get(...) or the provided convenience
        properties instead.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def ai_settings(self) -> AISettings:
        """Return the model settings wrapped in an AISettings helper."""
        return AISettings(self._section("ai_settings"))

    @property
    def twitch(self) -> TwitchSettings:
        """Return the Twitch connection settings wrapped in a TwitchSettings helper."""
        return TwitchSettings(self._section("twitch"))

    @property
    def database_path(self) -> Path:
        """Return the audit database path (default ``./data/modstream.db``)."""
        value = self._data.get("database_path") or "./data/modstream.db"
        return Path(str(value)).resolve()

    @property
    def moderation_config_path(self) -> Path:
        """Return the moderation policy file path (default ``./config/moderation.yml``)."""
        value = self._data.get("moderation_config") or "./config/moderation.yml"
        return Path(str(value)).resolve()

    @property
    def history_size(self) -> int:
        """Return how many recent chat messages are kept as model context."""
        return int(self._data.get("history_size", 20))
