"""chatstate: reactive session state and token accounting for chat clients."""

__version__ = "0.1.0"

from chatstate.config import Config, get_config, load_config
from chatstate.controller import ChatController, create_controller
from chatstate.core import (
    ChatMessage,
    GlobalSettings,
    MessageType,
    Role,
    SessionSettings,
    resolve_model,
    token_cost,
)
from chatstate.errors import ChatStateError, SettingsError, StoreError
from chatstate.session import MemorySessionStorage, SessionState, YamlSessionStorage
from chatstate.state import ChatStore

__all__ = [
    # Main entry points
    "ChatController",
    "create_controller",
    "ChatStore",
    # Data model
    "ChatMessage",
    "MessageType",
    "Role",
    "GlobalSettings",
    "SessionSettings",
    "SessionState",
    # Pure helpers
    "resolve_model",
    "token_cost",
    # Storage
    "MemorySessionStorage",
    "YamlSessionStorage",
    # Config
    "Config",
    "load_config",
    "get_config",
    # Errors
    "ChatStateError",
    "SettingsError",
    "StoreError",
]
