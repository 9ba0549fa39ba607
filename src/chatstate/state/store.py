"""The session store and its derived accounting.

ChatStore keeps the mutable root state of one chat UI session and layers
the derived values on top of it:

    message_list, session_settings.continuous_dialogue
        -> valid_context -> context_token
    input_content -> input_content_token
    current_assistant_message -> current_message_token
    session_settings.model, context_token, input_content_token
        -> current_model -> *_cost
    global_settings.api_key, session_settings.model, context_token,
    input_content_token -> remaining_token

Derived values are computed on first read and cached until something they
read changes.
"""

from __future__ import annotations

import contextlib
import dataclasses
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from pydantic import ValidationError

from chatstate.core.messages import ChatMessage, MessageType, Role
from chatstate.core.models import DEFAULT_MAX_INPUT_TOKENS, input_budget, resolve_model
from chatstate.core.pricing import token_cost
from chatstate.core.settings import GlobalSettings, SessionSettings, SettingsModel
from chatstate.core.tokens import TokenEstimator, count_tokens
from chatstate.errors import StoreError
from chatstate.logging import get_logger
from chatstate.state.reactive import Cell, Derived, ReactiveGraph

log = get_logger("store")

INDEX_SESSION_ID = "index"

STORED_FIELDS = (
    "session_id",
    "global_settings",
    "session_settings",
    "input_content",
    "message_list",
    "current_assistant_message",
    "loading",
)

DERIVED_FIELDS = (
    "valid_context",
    "context_token",
    "current_message_token",
    "input_content_token",
    "current_model",
    "remaining_token",
    "input_content_token_cost",
    "context_token_cost",
    "current_message_token_cost",
)


def select_valid_context(
    messages: tuple[ChatMessage, ...], continuous_dialogue: bool
) -> tuple[ChatMessage, ...]:
    """Pick the messages sent to the model as conversation history.

    With continuous dialogue on, an assistant message counts when a user
    message directly precedes it, and a user message counts unless an
    error message directly follows it. Otherwise only locked messages
    count.
    """
    if not continuous_dialogue:
        return tuple(m for m in messages if m.type is MessageType.LOCKED)

    selected = []
    last = len(messages) - 1
    for i, message in enumerate(messages):
        if message.role is Role.ASSISTANT:
            if i > 0 and messages[i - 1].role is Role.USER:
                selected.append(message)
        elif message.role is Role.USER:
            if i == last or messages[i + 1].role is not Role.ERROR:
                selected.append(message)
    return tuple(selected)


@dataclasses.dataclass(frozen=True)
class StoreSnapshot:
    """Stored and derived fields read at one point in time."""

    session_id: str
    global_settings: GlobalSettings
    session_settings: SessionSettings
    input_content: str
    message_list: tuple[ChatMessage, ...]
    current_assistant_message: str
    loading: bool
    valid_context: tuple[ChatMessage, ...]
    context_token: int
    current_message_token: int
    input_content_token: int
    current_model: str
    remaining_token: int
    input_content_token_cost: float
    context_token_cost: float
    current_message_token_cost: float


class ChatStore:
    """Root state of a chat session with memoized derived fields.

    Args:
        global_settings: Initial cross-session settings.
        session_settings: Initial per-session settings.
        max_input_tokens: Budget table used when an API key is configured.
        estimate_tokens: Token estimator applied to message and input text.
    """

    def __init__(
        self,
        global_settings: GlobalSettings | None = None,
        session_settings: SessionSettings | None = None,
        max_input_tokens: Mapping[str, int] | None = None,
        estimate_tokens: TokenEstimator = count_tokens,
    ) -> None:
        self._estimate = estimate_tokens
        self._max_input_tokens = dict(
            DEFAULT_MAX_INPUT_TOKENS if max_input_tokens is None else max_input_tokens
        )
        self._graph = graph = ReactiveGraph()

        initial: dict[str, Any] = {
            "session_id": INDEX_SESSION_ID,
            "global_settings": global_settings or GlobalSettings(),
            "session_settings": session_settings or SessionSettings(),
            "input_content": "",
            "message_list": (),
            "current_assistant_message": "",
            "loading": False,
        }
        self._cells: dict[str, Cell[Any]] = {
            name: graph.cell(name, value) for name, value in initial.items()
        }

        # Narrow selectors so unrelated settings edits stop at the first level
        continuous = graph.derived(
            "continuous_dialogue",
            lambda: self._cells["session_settings"].get().continuous_dialogue,
        )
        family = graph.derived("model_family", lambda: self._cells["session_settings"].get().model)
        has_api_key = graph.derived(
            "has_api_key", lambda: bool(self._cells["global_settings"].get().api_key)
        )

        valid_context = graph.derived(
            "valid_context",
            lambda: select_valid_context(self._cells["message_list"].get(), continuous.get()),
        )
        context_token = graph.derived(
            "context_token",
            lambda: sum(self._estimate(m.content) for m in valid_context.get()),
        )
        current_message_token = graph.derived(
            "current_message_token",
            lambda: self._estimate(self._cells["current_assistant_message"].get()),
        )
        input_content_token = graph.derived(
            "input_content_token",
            lambda: self._estimate(self._cells["input_content"].get()),
        )
        current_model = graph.derived(
            "current_model",
            lambda: resolve_model(
                family.get(), (input_content_token.get() + context_token.get()) / 1000
            ),
        )
        graph.derived(
            "remaining_token",
            lambda: self._budget(family.get(), has_api_key.get())
            - context_token.get()
            - input_content_token.get(),
        )
        graph.derived(
            "input_content_token_cost",
            lambda: token_cost(input_content_token.get(), current_model.get(), "input"),
        )
        graph.derived(
            "context_token_cost",
            lambda: token_cost(context_token.get(), current_model.get(), "input"),
        )
        graph.derived(
            "current_message_token_cost",
            lambda: token_cost(current_message_token.get(), current_model.get(), "output"),
        )

    def _budget(self, family: str, has_api_key: bool) -> int:
        table = self._max_input_tokens if has_api_key else DEFAULT_MAX_INPUT_TOKENS
        return input_budget(family, table)

    # -- reading ---------------------------------------------------------

    def get(self, name: str) -> Any:
        """Read a stored or derived field by name."""
        if name not in STORED_FIELDS and name not in DERIVED_FIELDS:
            raise StoreError(f"unknown field: {name}")
        return self._graph.node(name).get()

    def derived_node(self, name: str) -> Derived[Any]:
        """The graph node behind a derived field (for diagnostics)."""
        node = self._graph.node(name)
        if not isinstance(node, Derived):
            raise StoreError(f"not a derived field: {name}")
        return node

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(**{name: self.get(name) for name in STORED_FIELDS + DERIVED_FIELDS})

    @property
    def session_id(self) -> str:
        return self.get("session_id")

    @property
    def global_settings(self) -> GlobalSettings:
        return self.get("global_settings")

    @property
    def session_settings(self) -> SessionSettings:
        return self.get("session_settings")

    @property
    def input_content(self) -> str:
        return self.get("input_content")

    @property
    def message_list(self) -> tuple[ChatMessage, ...]:
        return self.get("message_list")

    @property
    def current_assistant_message(self) -> str:
        return self.get("current_assistant_message")

    @property
    def loading(self) -> bool:
        return self.get("loading")

    @property
    def valid_context(self) -> tuple[ChatMessage, ...]:
        return self.get("valid_context")

    @property
    def context_token(self) -> int:
        return self.get("context_token")

    @property
    def current_message_token(self) -> int:
        return self.get("current_message_token")

    @property
    def input_content_token(self) -> int:
        return self.get("input_content_token")

    @property
    def current_model(self) -> str:
        return self.get("current_model")

    @property
    def remaining_token(self) -> int:
        return self.get("remaining_token")

    @property
    def input_content_token_cost(self) -> float:
        return self.get("input_content_token_cost")

    @property
    def context_token_cost(self) -> float:
        return self.get("context_token_cost")

    @property
    def current_message_token_cost(self) -> float:
        return self.get("current_message_token_cost")

    # -- writing ---------------------------------------------------------

    @contextlib.contextmanager
    def batch(self) -> Iterator[None]:
        """Group writes so readers and watchers see them as one update."""
        with self._graph.batch():
            yield

    def set_field(self, path: str, value: Any) -> None:
        """Write a stored field, or one key of a settings record.

        Args:
            path: Field name, or "global_settings.<key>" / "session_settings.<key>".
            value: New value, or a callable receiving the current value.

        Raises:
            StoreError: For derived or unknown fields.
        """
        name, _, key = path.partition(".")
        cell = self._cell(name)
        current = self._graph.staged(cell)

        if key:
            if not isinstance(current, SettingsModel):
                raise StoreError(f"{name} has no sub-fields")
            if key not in type(current).model_fields:
                raise StoreError(f"unknown setting: {path}")
            old = getattr(current, key)
            new = value(old) if callable(value) else value
            try:
                updated = type(current).model_validate({**current.model_dump(), key: new})
            except ValidationError as e:
                raise StoreError(f"invalid value for {path}: {new!r}") from e
            cell.set(updated)
            return

        new = value(current) if callable(value) else value
        if name == "message_list":
            new = tuple(new)
        cell.set(new)

    def set_fields(self, values: Mapping[str, Any]) -> None:
        """Apply several writes as one batch."""
        with self.batch():
            for path, value in values.items():
                self.set_field(path, value)

    def _cell(self, name: str) -> Cell[Any]:
        if name in DERIVED_FIELDS:
            raise StoreError(f"{name} is derived and cannot be set")
        try:
            return self._cells[name]
        except KeyError:
            raise StoreError(f"unknown field: {name}") from None

    def watch(self, name: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Call `callback(value)` after each committed update that changes `name`."""
        if name not in STORED_FIELDS and name not in DERIVED_FIELDS:
            raise StoreError(f"unknown field: {name}")
        return self._graph.watch(self._graph.node(name), callback)

    # -- UI operations ---------------------------------------------------

    def set_input_content(self, text: str) -> None:
        self.set_field("input_content", text)

    def append_message(self, message: ChatMessage) -> None:
        self.set_field("message_list", lambda messages: (*messages, message))

    def update_streaming_assistant_message(self, text: str) -> None:
        self.set_field("current_assistant_message", text)

    def finalize_assistant_message(self) -> ChatMessage | None:
        """Move the streaming buffer into the message list as one update.

        Returns:
            The appended message, or None if the buffer was blank.
        """
        content = self._graph.staged(self._cells["current_assistant_message"])
        if not content.strip():
            self.set_field("current_assistant_message", "")
            return None
        message = ChatMessage(role=Role.ASSISTANT, content=content)
        with self.batch():
            self.append_message(message)
            self.set_field("current_assistant_message", "")
        return message

    def set_loading(self, loading: bool) -> None:
        self.set_field("loading", loading)
