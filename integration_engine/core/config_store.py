"""Configuration and persistence for engine settings and the CLI session."""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .session import SessionContext

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:8000/api/v1"

# Environment overrides for EngineSettings fields
ENV_OVERRIDES = {
    "api_base_url": "INTEGRATION_ENGINE_API_URL",
    "request_timeout": "INTEGRATION_ENGINE_REQUEST_TIMEOUT",
    "poll_timeout": "INTEGRATION_ENGINE_POLL_TIMEOUT",
    "poll_interval": "INTEGRATION_ENGINE_POLL_INTERVAL",
}


@dataclass
class EngineSettings:
    """Runtime settings for the backend client and the sync poller."""
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = 15.0
    poll_timeout: float = 10.0
    poll_interval: float = 30.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineSettings":
        """
        Create EngineSettings from a dictionary, ignoring unknown keys.

        Raises:
            ConfigError: If a timing value is not a positive number
        """
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        settings = cls(**values)
        settings._coerce()
        return settings

    def _coerce(self) -> None:
        self.api_base_url = str(self.api_base_url)
        for name in ("request_timeout", "poll_timeout", "poll_interval"):
            raw = getattr(self, name)
            try:
                value = float(raw)
            except (TypeError, ValueError):
                raise ConfigError(f"Setting '{name}' must be a number, got {raw!r}")
            if value <= 0:
                raise ConfigError(f"Setting '{name}' must be positive, got {value}")
            setattr(self, name, value)


def get_base_dir() -> Path:
    """
    Get the base directory for storing configuration.

    The directory is determined by:
    1. Environment variable INTEGRATION_ENGINE_HOME if set
    2. Otherwise, ~/.integration_engine

    The directory is created if it does not exist.

    Returns:
        Path to the base directory
    """
    env_home = os.environ.get("INTEGRATION_ENGINE_HOME")
    if env_home:
        base_dir = Path(env_home)
    else:
        base_dir = Path.home() / ".integration_engine"

    base_dir.mkdir(parents=True, exist_ok=True)
    return base_dir


def config_path(name: str) -> Path:
    """
    Get the path for a named configuration file.

    Args:
        name: File stem (e.g., "settings", "session")

    Returns:
        Path to the configuration file
    """
    return get_base_dir() / f"{name}.json"


def save_json(name: str, data: dict) -> Path:
    """
    Save a dictionary as JSON to a configuration file.

    Args:
        name: File stem
        data: Dictionary to save

    Returns:
        Path to the saved file
    """
    path = config_path(name)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
        logger.debug(f"Saved JSON to {path}")
        return path
    except OSError as e:
        raise ConfigError(f"Failed to save JSON to {path}: {e}")


def load_json(name: str) -> dict:
    """
    Load a dictionary from a configuration file.

    Args:
        name: File stem

    Returns:
        The loaded dictionary

    Raises:
        ConfigError: If the file does not exist or JSON is invalid
    """
    path = config_path(name)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to load JSON from {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a JSON object in {path}")
    logger.debug(f"Loaded JSON from {path}")
    return data


def load_settings() -> EngineSettings:
    """
    Load engine settings.

    Values come from settings.json in the base directory when it exists,
    then environment variables listed in ENV_OVERRIDES take precedence.

    Returns:
        The resolved EngineSettings

    Raises:
        ConfigError: If the settings file is invalid
    """
    data: dict[str, Any] = {}
    if config_path("settings").exists():
        data = load_json("settings")

    for name, env_var in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            logger.debug(f"Setting '{name}' overridden by {env_var}")
            data[name] = value

    return EngineSettings.from_dict(data)


def save_settings(settings: EngineSettings) -> Path:
    """Persist settings to settings.json."""
    return save_json("settings", settings.to_dict())


def save_session(session: SessionContext) -> Path:
    """Store the CLI session so later commands can reuse it."""
    return save_json("session", {"token": session.token, "user_id": session.user_id})


def load_session() -> SessionContext | None:
    """
    Load the stored CLI session.

    Returns:
        The stored SessionContext, or None if nobody is logged in

    Raises:
        ConfigError: If the session file is corrupt
    """
    if not config_path("session").exists():
        return None
    data = load_json("session")
    return SessionContext(token=data.get("token"), user_id=data.get("user_id"))


def clear_session() -> None:
    """Remove the stored CLI session, if any."""
    path = config_path("session")
    if path.exists():
        path.unlink()
        logger.debug(f"Removed session file {path}")
