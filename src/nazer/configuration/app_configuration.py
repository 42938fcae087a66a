from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from nazer.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_CACHE_TTL_SECONDS = 300.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0
DEFAULT_RESTORE_DELAY_SECONDS = 1.0
DEFAULT_FALLBACK_PARSE_MODE = "HTML"
DEFAULT_DATABASE_PATH = "data/app.db"


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml`` and exposes
    typed properties for the cache, eviction, follow-up and database
    sections. Uses fcntl file locks for safe
    concurrent access across processes.
    """

    def __init__(self, config_path: Path) -> None:
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
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                if not isinstance(data, dict):
                    logger.warning("[APP CONFIGURATION] %s does not contain a mapping; ignoring it.", self.config_path)
                    return {}
                return data
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    def _positive_float(self, section: str, key: str, default: float) -> float:
        raw = self._section(section).get(key, default)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] %s.%s=%r is not a number; using %s", section, key, raw, default)
            return default
        if value <= 0:
            logger.warning("[APP CONFIGURATION] %s.%s must be positive; using %s", section, key, default)
            return default
        return value

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def cache_ttl_seconds(self) -> float:
        """Default lifetime of a cached lookup. Default is 300 seconds."""
        return self._positive_float("cache", "ttl_seconds", DEFAULT_CACHE_TTL_SECONDS)

    @property
    def cache_sweep_interval(self) -> float:
        """Interval between background purges of expired cache entries. Default is 60 seconds."""
        return self._positive_float("cache", "sweep_interval_seconds", DEFAULT_SWEEP_INTERVAL_SECONDS)

    @property
    def restore_delay_seconds(self) -> float:
        """Delay between removing a member and lifting the removal again. Default is 1 second."""
        return self._positive_float("eviction", "restore_delay_seconds", DEFAULT_RESTORE_DELAY_SECONDS)

    @property
    def fallback_parse_mode(self) -> str:
        """Markup used when a follow-up cannot be sent with its stored entities."""
        value = self._section("follow_up").get("fallback_parse_mode") or DEFAULT_FALLBACK_PARSE_MODE
        return str(value)

    @property
    def database_path(self) -> Path:
        """Location of the SQLite database, resolved against the working directory."""
        value = self._section("database").get("path") or DEFAULT_DATABASE_PATH
        return Path(str(value)).resolve()


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
