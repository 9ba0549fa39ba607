"""Exception types raised by chatstate."""

from __future__ import annotations


class ChatStateError(Exception):
    """Base class for chatstate errors."""


class SettingsError(ChatStateError):
    """A settings payload is not valid JSON or does not fit the settings shape."""


class StoreError(ChatStateError):
    """An invalid write to the session store (unknown or derived field)."""
