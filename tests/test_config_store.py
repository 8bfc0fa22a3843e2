"""Tests for the configuration store."""

import json
import pytest

from integration_engine.core.errors import ConfigError
from integration_engine.core.session import SessionContext
from integration_engine.core.config_store import (
    DEFAULT_API_BASE_URL,
    EngineSettings,
    get_base_dir,
    config_path,
    save_json,
    load_json,
    load_settings,
    save_settings,
    save_session,
    load_session,
    clear_session,
)


@pytest.fixture
def temp_home(tmp_path, monkeypatch):
    """Set up a temporary home directory for config storage."""
    monkeypatch.setenv("INTEGRATION_ENGINE_HOME", str(tmp_path))
    for env_var in (
        "INTEGRATION_ENGINE_API_URL",
        "INTEGRATION_ENGINE_REQUEST_TIMEOUT",
        "INTEGRATION_ENGINE_POLL_TIMEOUT",
        "INTEGRATION_ENGINE_POLL_INTERVAL",
    ):
        monkeypatch.delenv(env_var, raising=False)
    return tmp_path


def test_get_base_dir_with_env_var(temp_home):
    """Test get_base_dir uses INTEGRATION_ENGINE_HOME environment variable."""
    base_dir = get_base_dir()
    assert base_dir == temp_home
    assert base_dir.exists()


def test_get_base_dir_creates_directory(temp_home):
    """Test get_base_dir creates the directory if it doesn't exist."""
    temp_home.rmdir()
    assert not temp_home.exists()

    base_dir = get_base_dir()
    assert base_dir.exists()
    assert base_dir.is_dir()


def test_config_path(temp_home):
    """Test config_path generates correct paths."""
    assert config_path("settings") == temp_home / "settings.json"
    assert config_path("session") == temp_home / "session.json"


def test_save_and_load_json(temp_home):
    """Test saving and loading JSON data."""
    data = {"key1": "value1", "key2": 42, "key3": ["list", "of", "items"]}

    path = save_json("test", data)
    assert path == temp_home / "test.json"
    assert load_json("test") == data


def test_load_json_missing_file(temp_home):
    """Test load_json raises ConfigError for missing file."""
    with pytest.raises(ConfigError) as exc_info:
        load_json("nonexistent")

    assert "not found" in str(exc_info.value).lower()


def test_load_json_invalid_json(temp_home):
    """Test load_json raises ConfigError for invalid JSON."""
    config_path("invalid").write_text("{ invalid json content")

    with pytest.raises(ConfigError) as exc_info:
        load_json("invalid")

    assert "invalid json" in str(exc_info.value).lower()


def test_load_json_rejects_non_object(temp_home):
    """Test load_json requires a JSON object."""
    config_path("list").write_text("[1, 2, 3]")

    with pytest.raises(ConfigError):
        load_json("list")


def test_load_settings_defaults(temp_home):
    """Test defaults are used when no settings file exists."""
    settings = load_settings()

    assert settings.api_base_url == DEFAULT_API_BASE_URL
    assert settings.request_timeout == 15.0
    assert settings.poll_timeout == 10.0
    assert settings.poll_interval == 30.0


def test_load_settings_from_file(temp_home):
    """Test settings.json values are applied and unknown keys ignored."""
    save_json("settings", {"api_base_url": "https://api.example.com/v1", "poll_interval": 5, "extra": 1})

    settings = load_settings()
    assert settings.api_base_url == "https://api.example.com/v1"
    assert settings.poll_interval == 5.0


def test_env_overrides_file(temp_home, monkeypatch):
    """Test environment variables take precedence over the settings file."""
    save_json("settings", {"poll_interval": 5})
    monkeypatch.setenv("INTEGRATION_ENGINE_POLL_INTERVAL", "12.5")
    monkeypatch.setenv("INTEGRATION_ENGINE_API_URL", "https://env.example.com/api")

    settings = load_settings()
    assert settings.poll_interval == 12.5
    assert settings.api_base_url == "https://env.example.com/api"


@pytest.mark.parametrize("value", ["abc", "0", "-3"])
def test_invalid_timing_value(temp_home, monkeypatch, value):
    """Test non-numeric or non-positive timings are rejected."""
    monkeypatch.setenv("INTEGRATION_ENGINE_REQUEST_TIMEOUT", value)

    with pytest.raises(ConfigError):
        load_settings()


def test_save_settings(temp_home):
    """Test settings are written as formatted JSON."""
    path = save_settings(EngineSettings(poll_interval=20.0))
    content = path.read_text()

    assert "\n" in content
    assert json.loads(content)["poll_interval"] == 20.0


def test_session_round_trip(temp_home):
    """Test storing, loading and clearing the CLI session."""
    assert load_session() is None

    save_session(SessionContext(token="abc123", user_id="u1"))
    session = load_session()
    assert session.token == "abc123"
    assert session.user_id == "u1"

    clear_session()
    assert load_session() is None
    clear_session()
