"""Reactive session store."""

from chatstate.state.reactive import Cell, Derived, ReactiveGraph
from chatstate.state.store import ChatStore, StoreSnapshot, select_valid_context

__all__ = [
    "Cell",
    "Derived",
    "ReactiveGraph",
    "ChatStore",
    "StoreSnapshot",
    "select_valid_context",
]
