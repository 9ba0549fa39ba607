"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from chatstate.config import Config, clear_env_cache, reset_config
from chatstate.controller import ChatController
from chatstate.session.storage import MemorySessionStorage
from chatstate.state.store import ChatStore
from tests.utils import word_count

pytest_plugins = ("pytest_asyncio",)

_ENV_VARS = (
    "CLIENT_GLOBAL_SETTINGS",
    "CLIENT_SESSION_SETTINGS",
    "CLIENT_MAX_INPUT_TOKENS",
    "CLIENT_DEFAULT_MESSAGE",
    "CHATSTATE_DATA_DIR",
    "CHATSTATE_LOG",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Keep real environment, .env files and cached config out of tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_env_cache()
    reset_config()
    yield
    clear_env_cache()
    reset_config()


@pytest.fixture
def store() -> ChatStore:
    return ChatStore(estimate_tokens=word_count)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(data_dir=tmp_path / "data", index_delay=0.01)


@pytest.fixture
def storage() -> MemorySessionStorage:
    return MemorySessionStorage()


@pytest.fixture
def controller(config: Config, storage: MemorySessionStorage) -> ChatController:
    return ChatController(config, storage, estimate_tokens=word_count)
