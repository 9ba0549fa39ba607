"""Session persistence storage.

Handles saving and loading sessions to/from YAML files in:
  $DATA_DIR/sessions/<session-id>.yaml

Session files contain:
- id: Unique identifier
- settings: Per-session settings (persisted key names)
- messages: List of {role, content, type}
- last_visit: Unix timestamp in milliseconds

Global settings are kept as raw JSON text in $DATA_DIR/global_settings.json;
parsing it is left to the session loader.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Protocol

import yaml
from filelock import FileLock
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chatstate.core.messages import ChatMessage
from chatstate.logging import get_logger

log = get_logger("storage")

GLOBAL_SETTINGS_FILE = "global_settings.json"
LOCK_TIMEOUT = 10


def now_ms() -> int:
    return int(time.time() * 1000)


class SessionState(BaseModel):
    """A persisted session snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    settings: dict[str, Any] | None = None
    messages: list[ChatMessage] | None = None
    last_visit: int = Field(default=0, alias="lastVisit")

    @property
    def title(self) -> str:
        return str((self.settings or {}).get("title", ""))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for persistence."""
        return {
            "id": self.id,
            "settings": self.settings or {},
            "messages": [m.to_dict() for m in self.messages or []],
            "last_visit": self.last_visit,
        }


class SessionStorage(Protocol):
    """Persistence collaborator used by the session loader."""

    def load_session_snapshot(self, session_id: str) -> SessionState | None: ...

    def list_all_persisted_sessions(self) -> list[SessionState]: ...

    def read_persisted_global_settings(self) -> str | None: ...

    def save_session_snapshot(self, state: SessionState) -> None: ...

    def write_persisted_global_settings(self, text: str) -> None: ...


class YamlSessionStorage:
    """Sessions as YAML files plus a JSON global-settings blob under one directory.

    Writes go to a temp file that is renamed into place while holding a
    file lock, so concurrent processes never see a half-written session.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)
        self._lock = FileLock(self._data_dir / ".chatstate.lock", timeout=LOCK_TIMEOUT)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def sessions_dir(self) -> Path:
        return self._data_dir / "sessions"

    def session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.yaml"

    def _read_session_file(self, path: Path) -> SessionState | None:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
            return SessionState.model_validate(data)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            log.warning("Failed to load session from %s: %s", path, e)
            return None

    def load_session_snapshot(self, session_id: str) -> SessionState | None:
        """Load one session, or None if it is missing or unreadable."""
        path = self.session_path(session_id)
        if not path.exists():
            return None
        return self._read_session_file(path)

    def list_all_persisted_sessions(self) -> list[SessionState]:
        """Load every readable session file (unordered)."""
        if not self.sessions_dir.exists():
            return []

        sessions: list[SessionState] = []
        for path in self.sessions_dir.glob("*.yaml"):
            state = self._read_session_file(path)
            if state:
                sessions.append(state)
        return sessions

    def save_session_snapshot(self, state: SessionState) -> None:
        """Write a session atomically.

        Raises:
            RuntimeError: If the file could not be written.
        """
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        path = self.session_path(state.id)
        temp_path = path.with_suffix(".yaml.tmp")

        with self._lock:
            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    yaml.safe_dump(
                        state.to_dict(), f, default_flow_style=False, allow_unicode=True, sort_keys=False
                    )
                temp_path.replace(path)
            except OSError as e:
                if temp_path.exists():
                    temp_path.unlink()
                raise RuntimeError(f"Failed to save session {state.id}: {e}") from e

        log.debug("Saved session %s to %s", state.id, path)

    def delete_session(self, session_id: str) -> bool:
        """Delete a session file. Returns False if it didn't exist."""
        path = self.session_path(session_id)
        if path.exists():
            path.unlink()
            log.debug("Deleted session %s", session_id)
            return True
        return False

    def read_persisted_global_settings(self) -> str | None:
        path = self._data_dir / GLOBAL_SETTINGS_FILE
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            log.warning("Error reading %s: %s", path, e)
            return None

    def write_persisted_global_settings(self, text: str) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        path = self._data_dir / GLOBAL_SETTINGS_FILE
        with self._lock:
            path.write_text(text, encoding="utf-8")


class MemorySessionStorage:
    """In-process storage; nothing survives the process."""

    def __init__(self, global_settings: str | None = None) -> None:
        self._sessions: dict[str, SessionState] = {}
        self._global_settings = global_settings

    def load_session_snapshot(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    def list_all_persisted_sessions(self) -> list[SessionState]:
        return list(self._sessions.values())

    def read_persisted_global_settings(self) -> str | None:
        return self._global_settings

    def save_session_snapshot(self, state: SessionState) -> None:
        self._sessions[state.id] = state

    def write_persisted_global_settings(self, text: str) -> None:
        self._global_settings = text
