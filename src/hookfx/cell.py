"""Persisted cells: values that load lazily and write back on change.

A CellScope is one lifetime (a session, a view). The first open() of a key
in a scope resolves its value exactly once: the stored value if it parses,
otherwise a freshly generated default that is written to storage before
open() returns. After that, storage is only touched by writes.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar

from hookfx.errors import StorageParseFailure
from hookfx.observable import Observable
from hookfx.storage import Storage

logger = logging.getLogger("hookfx.cell")

T = TypeVar("T")


class Cell(Generic[T]):
    """One persisted value. Create through CellScope.open()."""

    __slots__ = ("key", "_storage", "_format", "_lock", "_value", "initialized")

    def __init__(
        self,
        key: str,
        storage: Storage,
        format: Callable[[T], str],
        lock: threading.RLock,
    ) -> None:
        self.key = key
        self._storage = storage
        self._format = format
        self._lock = lock
        self._value: Observable[T] | None = None
        self.initialized = False

    def _resolve(self, parse: Callable[[str], T], default: Callable[[], T]) -> None:
        with self._lock:
            if self.initialized:
                return
            raw = self._storage.get(self.key)
            if raw is not None:
                try:
                    self._value = Observable(_parse(self.key, raw, parse))
                except StorageParseFailure as e:
                    logger.info("%s; using default", e)
            if self._value is None:
                value = default()
                self._value = Observable(value)
                self._storage.set(self.key, self._format(value))
                logger.debug("Initialized %r from default", self.key)
            self.initialized = True

    def read(self) -> T:
        """Current in-memory value. Tracked when read inside a reaction."""
        return self._value.get()

    def write(self, value: T) -> None:
        """Set the value and mirror it to storage, in call order per key.

        The in-memory value changes before write() returns, on any thread.
        Only observer notification goes through the dispatcher.
        """
        with self._lock:
            changed = self._store(value)
        if changed:
            self._value._notify_from_any_thread()

    def update(self, fn: Callable[[T], T]) -> T:
        """Atomically replace the value with fn(current). Returns the new value."""
        with self._lock:
            value = fn(self._value._value)
            changed = self._store(value)
        if changed:
            self._value._notify_from_any_thread()
        return value

    def _store(self, value: T) -> bool:
        # Storage first: a failed set leaves memory untouched.
        self._storage.set(self.key, self._format(value))
        return self._value._assign(value)

    @property
    def observable(self) -> Observable[T]:
        return self._value

    def __repr__(self) -> str:
        value = self._value.get() if self._value is not None else None
        return f"Cell({self.key!r}, {value!r})"


def _parse(key: str, raw: str, parse: Callable[[str], T]) -> T:
    try:
        return parse(raw)
    except (TypeError, ValueError) as exc:
        raise StorageParseFailure(key, raw) from exc


class CellScope:
    """Owns the cells opened within one lifetime over a storage backend."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self._cells: dict[str, Cell] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._lock = threading.Lock()

    def open(
        self,
        key: str,
        default: Callable[[], T],
        *,
        parse: Callable[[str], T] = int,
        format: Callable[[T], str] = str,
    ) -> Cell[T]:
        """Return the cell for key, resolving its initial value on first open."""
        with self._lock:
            cell = self._cells.get(key)
            if cell is None:
                lock = self._locks.setdefault(key, threading.RLock())
                cell = Cell(key, self.storage, format, lock)
                self._cells[key] = cell
        cell._resolve(parse, default)
        return cell

    def __contains__(self, key: str) -> bool:
        return key in self._cells

    def close(self) -> None:
        """End the scope. Stored values persist; in-memory cells are dropped."""
        with self._lock:
            self._cells.clear()

    def __enter__(self) -> CellScope:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
