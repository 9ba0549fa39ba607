"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides (CLIENT_* and CHATSTATE_*)
- Config caching with reset support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from chatstate.config.env import fetch_env
from chatstate.config.merge import merge_configs
from chatstate.config.paths import get_config_paths, get_default_data_dir
from chatstate.config.schema import DEFAULT_INDEX_DELAY, DEFAULT_MESSAGE, Config, LoggingConfig
from chatstate.core.models import DEFAULT_MAX_INPUT_TOKENS

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("chatstate.config")

_cached_config: Config | None = None

# Environment variables holding JSON objects, and the config key each feeds
_JSON_ENV_KEYS = {
    "CLIENT_GLOBAL_SETTINGS": "global_settings",
    "CLIENT_SESSION_SETTINGS": "session_settings",
    "CLIENT_MAX_INPUT_TOKENS": "max_input_tokens",
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def _parse_json_env(name: str, raw: str) -> dict[str, Any] | None:
    """Parse a JSON-object environment value; log and return None if unusable."""
    if name == "CLIENT_MAX_INPUT_TOKENS":
        try:
            float(raw)
        except ValueError:
            pass
        else:
            _log.warning("Ignoring numeric %s; expected a JSON object per model", name)
            return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        _log.error("Error parsing %s: %s", name, e)
        return None
    if not isinstance(parsed, dict):
        _log.error("Error parsing %s: expected a JSON object", name)
        return None
    return parsed


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables (and .env).

    Returns:
        Config dict with values from environment.
    """
    overrides: dict[str, Any] = {}

    for name, key in _JSON_ENV_KEYS.items():
        raw = fetch_env(name)
        if raw:
            parsed = _parse_json_env(name, raw)
            if parsed is not None:
                overrides[key] = parsed

    default_message = fetch_env("CLIENT_DEFAULT_MESSAGE")
    if default_message:
        overrides["default_message"] = default_message

    data_dir = fetch_env("CHATSTATE_DATA_DIR")
    if data_dir:
        overrides["data_dir"] = data_dir

    log_path = fetch_env("CHATSTATE_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    return overrides


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    max_input_tokens = dict(DEFAULT_MAX_INPUT_TOKENS)
    for family, budget in (data.get("max_input_tokens") or {}).items():
        try:
            max_input_tokens[str(family)] = int(budget)
        except (TypeError, ValueError):
            _log.warning("Ignoring non-numeric token budget for %s: %r", family, budget)

    log_data = data.get("logging") or {}
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    data_dir = data.get("data_dir")

    known_keys = {
        "global_settings",
        "session_settings",
        "max_input_tokens",
        "default_message",
        "data_dir",
        "index_delay",
        "logging",
    }
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        global_settings=dict(data.get("global_settings") or {}),
        session_settings=dict(data.get("session_settings") or {}),
        max_input_tokens=max_input_tokens,
        default_message=data.get("default_message") or DEFAULT_MESSAGE,
        data_dir=Path(data_dir).expanduser() if data_dir else get_default_data_dir(),
        index_delay=float(data.get("index_delay", DEFAULT_INDEX_DELAY)),
        logging=logging_config,
        extra=extra,
    )


def load_config(project_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables and .env
    2. Project config ($project_root/.chatstate/config.yaml)
    3. User config
    4. System config

    Args:
        project_root: Project directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    # Cache only global config (no project_root)
    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it if needed."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config. Useful for testing or forcing a reload."""
    global _cached_config
    _cached_config = None
