"""Session persistence, loading and search."""

from chatstate.session.loader import SessionLoader
from chatstate.session.search import (
    FuzzyIndex,
    IndexRebuilder,
    SearchOption,
    SessionSearch,
    build_search_index,
)
from chatstate.session.storage import (
    MemorySessionStorage,
    SessionState,
    SessionStorage,
    YamlSessionStorage,
)

__all__ = [
    "SessionLoader",
    "FuzzyIndex",
    "IndexRebuilder",
    "SearchOption",
    "SessionSearch",
    "build_search_index",
    "MemorySessionStorage",
    "SessionState",
    "SessionStorage",
    "YamlSessionStorage",
]
