"""Configuration management for chatstate.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/chatstate/ or %PROGRAMDATA%)
- User-level config (~/.config/chatstate/, ~/.chatstate/ or %APPDATA%)
- Project-level config ($project_root/.chatstate/)
- Environment variable overrides, including a .env file (highest priority)

Example usage:
    from chatstate.config import load_config, get_config

    config = load_config(project_root="/path/to/project")
    print(config.session_settings)
    print(config.max_input_tokens)
"""

from chatstate.config.env import clear_env_cache, fetch_env
from chatstate.config.loader import get_config, load_config, reset_config
from chatstate.config.paths import (
    get_config_paths,
    get_default_data_dir,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from chatstate.config.schema import Config, LoggingConfig

__all__ = [
    "Config",
    "LoggingConfig",
    "load_config",
    "get_config",
    "reset_config",
    "fetch_env",
    "clear_env_cache",
    "get_config_paths",
    "get_default_data_dir",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
