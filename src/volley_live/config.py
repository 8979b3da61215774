# Area: Shared
"""
volley_live.config — Scorer configuration
=========================================

Plain dict configuration: defaults, then an optional JSON file, then
environment variables (a ``.env`` file in the working directory is
loaded first via python-dotenv).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from ._engine.state import PRESETS, MatchConfig
from .errors import ConfigError

logger = logging.getLogger("volley_live.config")

DEFAULTS: Dict[str, Any] = {
    "owner_id": None,
    "db_path": "volley_live.db",
    "log_file": "volley_live.log",
    "push_window_seconds": 1.0,
    "interactions_window_seconds": 5.0,
    "alerts_enabled": True,
    "voice_capture_max_seconds": 30,
    "terminal_retry_attempts": 3,
    "preset": "3-Set",
}

ENV_MAPPINGS = {
    "VOLLEY_OWNER_ID": "owner_id",
    "VOLLEY_DB_PATH": "db_path",
    "VOLLEY_LOG_FILE": "log_file",
    "VOLLEY_PUSH_WINDOW_SECONDS": "push_window_seconds",
    "VOLLEY_INTERACTIONS_WINDOW_SECONDS": "interactions_window_seconds",
    "VOLLEY_ALERTS_ENABLED": "alerts_enabled",
    "VOLLEY_VOICE_CAPTURE_MAX_SECONDS": "voice_capture_max_seconds",
    "VOLLEY_TERMINAL_RETRY_ATTEMPTS": "terminal_retry_attempts",
    "VOLLEY_PRESET": "preset",
}

_FLOAT_KEYS = {"push_window_seconds", "interactions_window_seconds", "voice_capture_max_seconds"}
_INT_KEYS = {"terminal_retry_attempts"}
_BOOL_KEYS = {"alerts_enabled"}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    raise ConfigError(f"Expected a boolean, got {value!r}")


def _coerce_env(key: str, value: str) -> Any:
    try:
        if key in _FLOAT_KEYS:
            return float(value)
        if key in _INT_KEYS:
            return int(value)
    except ValueError as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e
    if key in _BOOL_KEYS:
        return _parse_bool(value)
    return value


def load_config(config_path: Optional[str] = None, use_dotenv: bool = True) -> Dict[str, Any]:
    """Load config from defaults, a JSON file and the environment."""
    if use_dotenv:
        load_dotenv()

    config: Dict[str, Any] = dict(DEFAULTS)

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        with open(path, encoding="utf-8") as f:
            try:
                config.update(json.load(f))
            except json.JSONDecodeError as e:
                raise ConfigError(f"Config file is not valid JSON: {e}") from e

    # Override with environment variables
    for env_key, config_key in ENV_MAPPINGS.items():
        if env_key in os.environ:
            config[config_key] = _coerce_env(config_key, os.environ[env_key])

    validate_config(config)
    return config


def validate_config(config: dict) -> None:
    """
    Validate configuration types and ranges.

    Raises:
        ConfigError: If a key has the wrong type or an out-of-range value
    """
    for key in ("push_window_seconds", "interactions_window_seconds", "voice_capture_max_seconds"):
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"{key} must be a positive number, got {value!r}")

    attempts = config.get("terminal_retry_attempts")
    if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 1:
        raise ConfigError(f"terminal_retry_attempts must be an integer >= 1, got {attempts!r}")

    if not isinstance(config.get("alerts_enabled"), bool):
        raise ConfigError("alerts_enabled must be a boolean")

    owner = config.get("owner_id")
    if owner is not None and not isinstance(owner, str):
        raise ConfigError("owner_id must be a string")

    for key in ("db_path", "log_file"):
        if not isinstance(config.get(key), str) or not config[key]:
            raise ConfigError(f"{key} must be a non-empty string")

    if config.get("preset") not in PRESETS:
        raise ConfigError(
            f"Unknown preset {config.get('preset')!r}; choose one of {sorted(PRESETS)}"
        )


def resolve_preset(config: Dict[str, Any]) -> MatchConfig:
    return PRESETS[config.get("preset", "3-Set")]
