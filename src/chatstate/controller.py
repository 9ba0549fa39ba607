"""Root controller owning the process-wide chat state.

One ChatController is created at startup from the loaded configuration. It
owns the store, the session search holder and the loader, and exposes the
operations the UI layer calls.
"""

from __future__ import annotations

import json

from chatstate.config import Config, get_config
from chatstate.core.messages import ChatMessage, MessageType, default_message
from chatstate.core.settings import GlobalSettings, SessionSettings, merge_settings
from chatstate.core.tokens import TokenEstimator, count_tokens
from chatstate.errors import SettingsError
from chatstate.logging import get_logger
from chatstate.session.loader import SessionLoader
from chatstate.session.search import IndexRebuilder, SearchOption, SessionSearch
from chatstate.session.storage import SessionState, SessionStorage, YamlSessionStorage, now_ms
from chatstate.state.store import INDEX_SESSION_ID, ChatStore

log = get_logger("controller")


def _initial_settings(config: Config) -> tuple[GlobalSettings, SessionSettings]:
    """Defaults overlaid with configured settings; bad config falls back to defaults."""
    global_settings = GlobalSettings()
    session_settings = SessionSettings()
    try:
        global_settings = merge_settings(global_settings, config.global_settings)
    except SettingsError as e:
        log.error("Error parsing configured global settings: %s", e)
    try:
        session_settings = merge_settings(session_settings, config.session_settings)
    except SettingsError as e:
        log.error("Error parsing configured session settings: %s", e)
    return global_settings, session_settings


class ChatController:
    """Owns the store and everything that feeds it.

    Args:
        config: Loaded configuration.
        storage: Persistence collaborator.
        estimate_tokens: Token estimator for the store.
    """

    def __init__(
        self,
        config: Config,
        storage: SessionStorage,
        estimate_tokens: TokenEstimator = count_tokens,
    ) -> None:
        self.config = config
        self.storage = storage
        global_settings, session_settings = _initial_settings(config)
        self.store = ChatStore(
            global_settings=global_settings,
            session_settings=session_settings,
            max_input_tokens=config.max_input_tokens,
            estimate_tokens=estimate_tokens,
        )
        self.search = SessionSearch()
        self.rebuilder = IndexRebuilder(
            storage,
            self.search,
            current_session_id=lambda: self.store.session_id,
            reserved_ids={INDEX_SESSION_ID},
            delay=config.index_delay,
        )
        self.loader = SessionLoader(self.store, storage, self.rebuilder)

    @property
    def default_message(self) -> ChatMessage:
        return default_message(self.config.default_message)

    def load_session(self, session_id: str) -> None:
        self.loader.load(session_id)

    def set_input_content(self, text: str) -> None:
        self.store.set_input_content(text)

    def append_message(self, message: ChatMessage) -> None:
        self.store.append_message(message)

    def update_streaming_assistant_message(self, text: str) -> None:
        self.store.update_streaming_assistant_message(text)

    def finalize_assistant_message(self) -> ChatMessage | None:
        return self.store.finalize_assistant_message()

    def search_sessions(self, query: str, limit: int | None = None) -> list[SearchOption]:
        return self.search.find(query, limit)

    def save_session(self) -> SessionState:
        """Persist the current session; unsaved sessions keep only locked messages."""
        settings = self.store.session_settings
        messages = list(self.store.message_list)
        if not settings.save_session:
            messages = [m for m in messages if m.type is MessageType.LOCKED]
        state = SessionState(
            id=self.store.session_id,
            settings=settings.to_payload(),
            messages=messages,
            last_visit=now_ms(),
        )
        self.storage.save_session_snapshot(state)
        return state

    def save_global_settings(self) -> None:
        self.storage.write_persisted_global_settings(
            json.dumps(self.store.global_settings.to_payload())
        )


def create_controller(
    config: Config | None = None,
    storage: SessionStorage | None = None,
    estimate_tokens: TokenEstimator = count_tokens,
) -> ChatController:
    """Build the process-wide controller from configuration."""
    config = config or get_config()
    if storage is None:
        storage = YamlSessionStorage(config.data_dir)
    return ChatController(config, storage, estimate_tokens)
