"""Chat message types."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Role(Enum):
    """Who produced a message."""

    USER = "user"
    ASSISTANT = "assistant"
    ERROR = "error"


class MessageType(Enum):
    """How a message takes part in context selection.

    - NORMAL: regular dialogue turn
    - LOCKED: pinned; always part of the context window
    - DEFAULT: placeholder greeting, never counted
    """

    NORMAL = "normal"
    LOCKED = "locked"
    DEFAULT = "default"


class ChatMessage(BaseModel):
    """A message in a chat session. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    type: MessageType = MessageType.NORMAL

    @property
    def is_locked(self) -> bool:
        return self.type is MessageType.LOCKED

    def to_dict(self) -> dict[str, str]:
        """Serialize for persistence."""
        return {"role": self.role.value, "content": self.content, "type": self.type.value}


def user(content: str, type: MessageType = MessageType.NORMAL) -> ChatMessage:
    return ChatMessage(role=Role.USER, content=content, type=type)


def assistant(content: str, type: MessageType = MessageType.NORMAL) -> ChatMessage:
    return ChatMessage(role=Role.ASSISTANT, content=content, type=type)


def error(content: str) -> ChatMessage:
    return ChatMessage(role=Role.ERROR, content=content)


def default_message(content: str) -> ChatMessage:
    """The greeting shown in an empty session; kept out of the message list."""
    return ChatMessage(role=Role.ASSISTANT, content=content, type=MessageType.DEFAULT)
