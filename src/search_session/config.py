"""Configuration management using Pydantic settings with optional file persistence."""

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import SortKey

logger = logging.getLogger(__name__)

# --- Paths ---

APP_NAME = "search-session"


def get_config_dir() -> Path:
    """Get the configuration directory (e.g. ~/.config/search-session).

    ``SEARCH_SESSION_CONFIG_DIR`` overrides the location.
    """
    override = os.environ.get("SEARCH_SESSION_CONFIG_DIR")
    if override:
        path = Path(override).expanduser()
    else:
        if os.name == "nt":
            base = Path(os.environ.get("APPDATA", Path.home() / ".config")).expanduser()
        else:
            base = Path("~/.config").expanduser()
        path = base / APP_NAME

    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_file() -> Path:
    return get_config_dir() / "config.json"


def load_config_file() -> dict[str, Any]:
    """Load settings from the JSON config file if it exists."""
    config_file = get_config_file()
    if not config_file.exists():
        return {}

    try:
        text = config_file.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        return json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable config file {config_file}: {e}")
        return {}


def save_config_file(config_data: dict[str, Any]) -> Path:
    """Save settings to the JSON config file."""
    config_file = get_config_file()
    config_file.write_text(json.dumps(config_data, indent=2), encoding="utf-8")
    return config_file


class SessionSettings(BaseSettings):
    """Search session behavior configuration."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_SESSION_")

    default_sort: SortKey = Field(default=SortKey.DEFAULT, description="Sort order used before user settings are loaded")
    source_timeout: float = Field(default=15.0, description="Timeout per source search in seconds")
    cache_path: Optional[str] = Field(default=None, description="File backing the result cache (default: <config dir>/last_search.json)")
    settings_path: Optional[str] = Field(default=None, description="File backing user settings (default: <config dir>/user_settings.json)")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_LOG_")

    level: str = Field(default="INFO")
    json_output: bool = Field(default=True, description="Render log events as JSON lines")


class AppSettings(BaseSettings):
    """Root application settings.

    Priority: Environment Variables > Config File > Defaults
    """

    model_config = SettingsConfigDict(env_prefix="SEARCH_", extra="ignore")

    session: SessionSettings = Field(default_factory=SessionSettings)
    log: LoggingSettings = Field(default_factory=LoggingSettings)

    def save(self) -> Path:
        """Save current configuration to file."""
        return save_config_file(self.model_dump(mode="json", exclude_none=True))

    def get_cache_path(self) -> Path:
        if self.session.cache_path:
            return Path(self.session.cache_path).expanduser()
        return get_config_dir() / "last_search.json"

    def get_settings_path(self) -> Path:
        if self.session.settings_path:
            return Path(self.session.settings_path).expanduser()
        return get_config_dir() / "user_settings.json"


def _load_settings() -> AppSettings:
    """Load settings with file config as base, env vars overlay."""
    file_data = load_config_file()
    # Env vars for nested models are read by each sub-settings class; drop file values they override.
    for section, model in (("session", SessionSettings), ("log", LoggingSettings)):
        values = file_data.get(section)
        if not isinstance(values, dict):
            continue
        prefix = model.model_config.get("env_prefix", "")
        file_data[section] = {k: v for k, v in values.items() if f"{prefix}{k}".upper() not in os.environ}
        file_data[section] = model(**file_data[section])
    return AppSettings(**file_data)


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Get the process-wide settings (cached; call ``get_settings.cache_clear()`` after env changes)."""
    return _load_settings()
