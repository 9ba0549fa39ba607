"""Dependency-tracked reactive values.

A ReactiveGraph holds two kinds of nodes:

- Cell: a stored value, written by the application.
- Derived: a memoized function of other nodes.

Invalidation is pushed, computation is pulled. Writing a cell bumps its
version and marks every transitive dependent stale without computing
anything. Reading a stale Derived first refreshes the dependencies it read
last time; it recomputes only if one of their versions moved. A recompute
that yields an equal value keeps the old version, so nodes further down do
not recompute either.

Dependencies are recorded while a Derived's function runs, by noting every
node read through `get()`; they are re-recorded on each recompute.

Writes inside `graph.batch()` are staged and committed together when the
outermost batch exits, after which watchers run.
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Iterator
from contextvars import ContextVar
from typing import Any, Generic, TypeVar

from chatstate.logging import TRACE, get_logger

log = get_logger("reactive")

T = TypeVar("T")

# Derived node whose function is currently running, if any
_current_reader: ContextVar[Derived[Any] | None] = ContextVar("chatstate_reader", default=None)

_UNSET: Any = object()


class Node(Generic[T]):
    """Common versioning and dependent tracking."""

    def __init__(self, graph: ReactiveGraph, name: str) -> None:
        self.name = name
        self.version = 0
        self._graph = graph
        self._dependents: set[Derived[Any]] = set()

    def get(self) -> T:
        raise NotImplementedError

    def peek(self) -> T:
        """Read without registering a dependency."""
        token = _current_reader.set(None)
        try:
            return self.get()
        finally:
            _current_reader.reset(token)

    def _track(self) -> None:
        reader = _current_reader.get()
        if reader is not None:
            reader._dependencies[self] = self.version
            self._dependents.add(reader)

    def _invalidate_dependents(self) -> None:
        for dependent in list(self._dependents):
            dependent._mark_stale()

    def _refresh(self) -> None:
        """Bring the value up to date. Cells are always current."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} v{self.version}>"


class Cell(Node[T]):
    """A stored value."""

    def __init__(self, graph: ReactiveGraph, name: str, value: T) -> None:
        super().__init__(graph, name)
        self._value = value

    def get(self) -> T:
        self._track()
        return self._value

    def set(self, value: T) -> None:
        self._graph.write(self, value)

    def _commit(self, value: T) -> bool:
        if value is self._value or value == self._value:
            return False
        self._value = value
        self.version += 1
        self._invalidate_dependents()
        return True


class Derived(Node[T]):
    """A memoized computation over other nodes."""

    def __init__(self, graph: ReactiveGraph, name: str, fn: Callable[[], T]) -> None:
        super().__init__(graph, name)
        self._fn = fn
        self._value: T = _UNSET
        self._stale = True
        # Last computation raised; the next read must run fn again
        self._failed = False
        self._dependencies: dict[Node[Any], int] = {}
        self.compute_count = 0

    @property
    def stale(self) -> bool:
        return self._stale

    @property
    def dependencies(self) -> list[str]:
        """Names of the nodes read by the last computation."""
        return [dep.name for dep in self._dependencies]

    def get(self) -> T:
        self._refresh()
        self._track()
        return self._value

    def _mark_stale(self) -> None:
        if self._stale:
            return
        self._stale = True
        self._invalidate_dependents()

    def _refresh(self) -> None:
        if not self._stale:
            return
        if (
            not self._failed
            and self._value is not _UNSET
            and not self._dependencies_changed()
        ):
            self._stale = False
            return
        self._recompute()

    def _dependencies_changed(self) -> bool:
        for dep, seen_version in self._dependencies.items():
            dep._refresh()
            if dep.version != seen_version:
                return True
        return False

    def _recompute(self) -> None:
        for dep in self._dependencies:
            dep._dependents.discard(self)
        self._dependencies = {}

        token = _current_reader.set(self)
        try:
            value = self._fn()
        except BaseException:
            self._failed = True
            raise
        finally:
            _current_reader.reset(token)

        self.compute_count += 1
        self._failed = False
        self._stale = False
        if self._value is _UNSET or value != self._value:
            self._value = value
            self.version += 1
        log.log(TRACE, "recomputed %s (v%d)", self.name, self.version)


class ReactiveGraph:
    """Owns cells, derived nodes, batching and watchers."""

    def __init__(self) -> None:
        self._nodes: dict[str, Node[Any]] = {}
        self._batch_depth = 0
        self._pending: dict[Cell[Any], Any] = {}
        self._watches: list[_Watch] = []

    def cell(self, name: str, value: T) -> Cell[T]:
        node = Cell(self, name, value)
        self._register(node)
        return node

    def derived(self, name: str, fn: Callable[[], T]) -> Derived[T]:
        node = Derived(self, name, fn)
        self._register(node)
        return node

    def _register(self, node: Node[Any]) -> None:
        if node.name in self._nodes:
            raise ValueError(f"duplicate node name: {node.name}")
        self._nodes[node.name] = node

    def node(self, name: str) -> Node[Any]:
        return self._nodes[name]

    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    @property
    def in_batch(self) -> bool:
        return self._batch_depth > 0

    def staged(self, cell: Cell[T]) -> T:
        """Value the cell will hold once the current batch commits."""
        if cell in self._pending:
            return self._pending[cell]
        return cell.peek()

    def write(self, cell: Cell[T], value: T) -> None:
        if self._batch_depth:
            self._pending[cell] = value
            return
        if cell._commit(value):
            self._run_watches()

    @contextlib.contextmanager
    def batch(self) -> Iterator[None]:
        """Stage writes and commit them together.

        If the body raises, writes staged by the outermost batch are
        discarded and the exception propagates.
        """
        self._batch_depth += 1
        try:
            yield
        except BaseException:
            self._batch_depth -= 1
            if not self._batch_depth:
                self._pending.clear()
            raise
        self._batch_depth -= 1
        if self._batch_depth:
            return

        pending, self._pending = self._pending, {}
        changed = False
        for cell, value in pending.items():
            changed = cell._commit(value) or changed
        if changed:
            self._run_watches()

    def watch(self, node: Node[T], callback: Callable[[T], None]) -> Callable[[], None]:
        """Call `callback(value)` after each commit that changes `node`.

        Returns:
            A function that removes the watch.
        """
        node.peek()
        watch = _Watch(node, callback, node.version)
        self._watches.append(watch)

        def unwatch() -> None:
            if watch in self._watches:
                self._watches.remove(watch)

        return unwatch

    def _run_watches(self) -> None:
        for watch in list(self._watches):
            value = watch.node.peek()
            if watch.node.version == watch.seen_version:
                continue
            watch.seen_version = watch.node.version
            watch.callback(value)


class _Watch:
    __slots__ = ("node", "callback", "seen_version")

    def __init__(self, node: Node[Any], callback: Callable[[Any], None], seen_version: int) -> None:
        self.node = node
        self.callback = callback
        self.seen_version = seen_version
