"""Fuzzy search over persisted sessions.

The index is rebuilt after each session switch, off the hot path: the
rebuild is deferred by a fixed delay and writes into a SessionSearch holder
that the store never reads. A rebuild always recomputes everything from the
persisted session list, so a stale trigger only costs redundant work.
"""

from __future__ import annotations

import asyncio
import difflib
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from chatstate.logging import get_logger
from chatstate.session.storage import SessionState, SessionStorage

log = get_logger("search")

T = TypeVar("T")

# Score bonus when the query appears verbatim in the key
SUBSTRING_BONUS = 1.0


@dataclass(frozen=True)
class SearchOption:
    """One searchable entry."""

    title: str
    desc: str
    extra: dict[str, Any] = field(default_factory=dict)


def _is_subsequence(query: str, key: str) -> bool:
    it = iter(key)
    return all(ch in it for ch in query)


class FuzzyIndex(Generic[T]):
    """Subsequence matching with difflib scoring.

    An entry matches when every character of the query occurs in its key in
    order, ignoring case. Matches are ranked by SequenceMatcher ratio, with a
    bonus for keys containing the query as a contiguous substring; ties keep
    entry order.
    """

    def __init__(self, entries: Sequence[T], selector: Callable[[T], str]) -> None:
        self._entries = list(entries)
        self._keys = [selector(entry).lower() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def find(self, query: str, limit: int | None = None) -> list[T]:
        query = query.lower().strip()
        if not query:
            return self._entries[:limit]

        scored: list[tuple[float, int]] = []
        for position, key in enumerate(self._keys):
            if not _is_subsequence(query, key):
                continue
            score = difflib.SequenceMatcher(None, query, key, autojunk=False).ratio()
            if query in key:
                score += SUBSTRING_BONUS
            scored.append((score, position))

        scored.sort(key=lambda item: (-item[0], item[1]))
        return [self._entries[position] for _, position in scored[:limit]]


def build_search_index(entries: Sequence[T], selector: Callable[[T], str]) -> FuzzyIndex[T]:
    return FuzzyIndex(entries, selector)


def option_key(option: SearchOption) -> str:
    return f"{option.title}\n{option.desc}"


def session_options(
    sessions: Sequence[SessionState], exclude: set[str]
) -> list[SearchOption]:
    """Searchable entries for sessions, most recently visited first."""
    ordered = sorted(sessions, key=lambda s: s.last_visit, reverse=True)
    return [
        SearchOption(
            title=s.title,
            desc="\n".join(m.content for m in s.messages or []),
            extra={"id": s.id},
        )
        for s in ordered
        if s.id not in exclude
    ]


class SessionSearch:
    """Holder for the current session options and their index.

    Both are replaced together on each rebuild.
    """

    def __init__(self) -> None:
        self._state: tuple[list[SearchOption], FuzzyIndex[SearchOption] | None] = ([], None)
        self.rebuild_count = 0

    @property
    def options(self) -> list[SearchOption]:
        return self._state[0]

    @property
    def index(self) -> FuzzyIndex[SearchOption] | None:
        return self._state[1]

    def replace(self, options: list[SearchOption]) -> None:
        self._state = (options, build_search_index(options, option_key))
        self.rebuild_count += 1

    def find(self, query: str, limit: int | None = None) -> list[SearchOption]:
        index = self.index
        if index is None:
            return []
        return index.find(query, limit)


class IndexRebuilder:
    """Rebuilds a SessionSearch from storage after a fixed delay.

    Args:
        storage: Source of persisted sessions.
        search: Holder receiving the rebuilt index.
        current_session_id: Called at fire time; that session is left out.
        reserved_ids: Session ids never listed.
        delay: Seconds to wait before rebuilding.
    """

    def __init__(
        self,
        storage: SessionStorage,
        search: SessionSearch,
        current_session_id: Callable[[], str],
        reserved_ids: set[str],
        delay: float,
    ) -> None:
        self._storage = storage
        self._search = search
        self._current_session_id = current_session_id
        self._reserved_ids = set(reserved_ids)
        self._delay = delay
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def rebuild(self) -> None:
        """Rebuild immediately."""
        exclude = self._reserved_ids | {self._current_session_id()}
        options = session_options(self._storage.list_all_persisted_sessions(), exclude)
        self._search.replace(options)
        log.debug("Rebuilt session index with %d entries", len(options))

    def schedule(self) -> None:
        """Rebuild after the delay without blocking the caller.

        Uses the running event loop when there is one; otherwise rebuilds
        inline. Earlier scheduled rebuilds are not cancelled.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._safe_rebuild()
            return

        task = loop.create_task(self._rebuild_later())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _rebuild_later(self) -> None:
        await asyncio.sleep(self._delay)
        self._safe_rebuild()

    def _safe_rebuild(self) -> None:
        try:
            self.rebuild()
        except Exception as e:
            log.warning("Session index rebuild failed: %s", e)

    async def drain(self) -> None:
        """Wait for every scheduled rebuild to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
