"""Environment lookups with dotenv support.

Client settings overrides (CLIENT_* variables) may live in the process
environment or in a `.env` file next to the working directory.

Priority order:
1. Environment variables (os.environ)
2. .env file in the current directory (cached)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import dotenv_values

ENV_FILE = ".env"


@lru_cache(maxsize=1)
def _load_env_file(env_path: Path | None = None) -> dict[str, str | None]:
    """Load and cache the .env file."""
    path = env_path or Path(ENV_FILE)
    if path.exists():
        return dotenv_values(path)
    return {}


def fetch_env(
    key: str,
    default: str | None = None,
    env_path: Path | None = None,
) -> str | None:
    """Fetch a value from the environment or the .env file.

    os.environ is checked first so tests can use monkeypatch.setenv/delenv.

    Args:
        key: Variable name (e.g., "CLIENT_GLOBAL_SETTINGS")
        default: Default value if not found
        env_path: Optional path to a dotenv file

    Returns:
        The value or default if not found.
    """
    value = os.environ.get(key)
    if value is not None:
        return value

    values = _load_env_file(env_path)
    if values.get(key) is not None:
        return values[key]

    return default


def clear_env_cache() -> None:
    """Forget the cached .env file contents."""
    _load_env_file.cache_clear()
