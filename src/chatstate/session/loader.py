"""Switching the store to a persisted session.

A switch reads the persisted global settings and the session snapshot,
merges them onto the store's current values, and commits session id,
settings and messages in a single batch. Malformed settings are logged
and skipped; a missing session simply starts fresh.
"""

from __future__ import annotations

from typing import Any

from chatstate.core.messages import MessageType
from chatstate.core.settings import GlobalSettings, SessionSettings, merge_settings, parse_settings
from chatstate.errors import SettingsError
from chatstate.logging import get_logger
from chatstate.session.search import IndexRebuilder
from chatstate.session.storage import SessionState, SessionStorage
from chatstate.state.store import ChatStore

log = get_logger("loader")


class SessionLoader:
    """Loads sessions from storage into a ChatStore.

    Args:
        store: Store to update.
        storage: Persistence collaborator.
        rebuilder: Deferred session-index rebuild, triggered after each load.
    """

    def __init__(
        self,
        store: ChatStore,
        storage: SessionStorage,
        rebuilder: IndexRebuilder | None = None,
    ) -> None:
        self._store = store
        self._storage = storage
        self._rebuilder = rebuilder

    def _merged_global_settings(self, current: GlobalSettings) -> GlobalSettings:
        raw = self._storage.read_persisted_global_settings()
        if not raw:
            return current
        try:
            return parse_settings(current, raw)
        except SettingsError as e:
            log.error("Error parsing persisted global settings: %s", e)
            return current

    def _merged_session_settings(
        self, current: SessionSettings, session: SessionState | None
    ) -> SessionSettings:
        if session is None or not session.settings:
            return current
        try:
            return merge_settings(current, session.settings)
        except SettingsError as e:
            log.error("Error parsing settings of session %s: %s", session.id, e)
            return current

    def load(self, session_id: str) -> None:
        """Make `session_id` the store's current session.

        The session index rebuild is deferred when an event loop is running.
        Without one it runs inline, so this call also pays for a full scan
        of persisted sessions.
        """
        store = self._store
        session = self._storage.load_session_snapshot(session_id)
        if session is None:
            log.debug("No persisted session %s, starting fresh", session_id)

        global_settings = self._merged_global_settings(store.global_settings)
        session_settings = self._merged_session_settings(store.session_settings, session)

        updates: dict[str, Any] = {
            "session_id": session_id,
            "global_settings": global_settings,
            "session_settings": session_settings,
        }
        if session is not None and session.messages is not None:
            messages = session.messages
            if not session_settings.save_session:
                messages = [m for m in messages if m.type is MessageType.LOCKED]
            updates["message_list"] = messages

        store.set_fields(updates)
        log.debug("Loaded session %s", session_id)

        if self._rebuilder is not None:
            self._rebuilder.schedule()
