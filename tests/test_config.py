# Area: Config Tests
"""Tests for configuration loading and validation."""

import json
import os
from unittest.mock import patch

import pytest

from volley_live._engine.state import PRESETS
from volley_live.config import DEFAULTS, load_config, resolve_preset, validate_config
from volley_live.errors import ConfigError


@pytest.fixture
def clean_env():
    env = {k: v for k, v in os.environ.items() if not k.startswith("VOLLEY_")}
    with patch.dict(os.environ, env, clear=True):
        yield


@pytest.fixture
def config_file(tmp_path):
    def _write(content):
        path = tmp_path / "config.json"
        path.write_text(content if isinstance(content, str) else json.dumps(content))
        return str(path)
    return _write


class TestLoadConfig:
    """Defaults, then file, then environment."""

    def test_defaults(self, clean_env):
        assert load_config(use_dotenv=False) == DEFAULTS

    def test_file_overrides_defaults(self, clean_env, config_file):
        path = config_file({"owner_id": "coach-7", "preset": "5-Set"})
        config = load_config(path, use_dotenv=False)
        assert config["owner_id"] == "coach-7"
        assert config["preset"] == "5-Set"
        assert config["push_window_seconds"] == 1.0

    def test_env_overrides_file(self, clean_env, config_file):
        path = config_file({"owner_id": "from-file"})
        with patch.dict(os.environ, {
            "VOLLEY_OWNER_ID": "from-env",
            "VOLLEY_PUSH_WINDOW_SECONDS": "2.5",
            "VOLLEY_TERMINAL_RETRY_ATTEMPTS": "5",
            "VOLLEY_ALERTS_ENABLED": "off",
        }):
            config = load_config(path, use_dotenv=False)
        assert config["owner_id"] == "from-env"
        assert config["push_window_seconds"] == 2.5
        assert config["terminal_retry_attempts"] == 5
        assert config["alerts_enabled"] is False

    def test_missing_file(self, clean_env):
        with pytest.raises(ConfigError, match="not found"):
            load_config("/nonexistent/config.json", use_dotenv=False)

    def test_bad_json(self, clean_env, config_file):
        with pytest.raises(ConfigError, match="not valid JSON"):
            load_config(config_file("{oops"), use_dotenv=False)

    def test_bad_env_number(self, clean_env):
        with patch.dict(os.environ, {"VOLLEY_PUSH_WINDOW_SECONDS": "soon"}):
            with pytest.raises(ConfigError):
                load_config(use_dotenv=False)

    def test_bad_env_bool(self, clean_env):
        with patch.dict(os.environ, {"VOLLEY_ALERTS_ENABLED": "maybe"}):
            with pytest.raises(ConfigError, match="boolean"):
                load_config(use_dotenv=False)


class TestValidateConfig:
    @pytest.mark.parametrize("key,value", [
        ("push_window_seconds", 0),
        ("interactions_window_seconds", -1),
        ("voice_capture_max_seconds", True),
        ("terminal_retry_attempts", 0),
        ("terminal_retry_attempts", 1.5),
        ("alerts_enabled", "yes"),
        ("owner_id", 42),
        ("db_path", ""),
        ("preset", "7-Set"),
    ])
    def test_invalid_values_rejected(self, key, value):
        config = dict(DEFAULTS, **{key: value})
        with pytest.raises(ConfigError):
            validate_config(config)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_config(dict(DEFAULTS, preset="nope"))

    def test_resolve_preset(self):
        assert resolve_preset({"preset": "2-Set-Seeding"}) is PRESETS["2-Set-Seeding"]
        assert resolve_preset({}).total_sets == 3
