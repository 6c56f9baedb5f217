"""Observable values: state that knows who reads it.

Task results and cell values live in Observables so reactions can follow
them. Reading inside a reaction registers the dependency. Writing a
different value re-runs every dependent reaction.

Thread safety: call set_dispatcher() once from the control thread. After
that, any .set() from another thread is handed to the dispatcher instead
of running in place. Control-thread writes stay synchronous.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

from hookfx._tracking import track

T = TypeVar("T")

_dispatcher: Callable[[Callable[[], None]], None] | None = None
_dispatcher_thread: threading.Thread | None = None


def set_dispatcher(dispatcher: Callable[[Callable[[], None]], None] | None) -> None:
    """Install the cross-thread dispatcher for Observable writes.

    Call from the thread that owns the state, e.g.:
        hookfx.set_dispatcher(app.call_from_thread)

    Passing None restores direct writes from every thread.
    """
    global _dispatcher, _dispatcher_thread
    _dispatcher = dispatcher
    _dispatcher_thread = threading.current_thread() if dispatcher is not None else None


def on_control_thread() -> bool:
    return _dispatcher is None or threading.current_thread() is _dispatcher_thread


class Observable(Generic[T]):
    """A single observable value."""

    __slots__ = ("_value", "_observers")

    def __init__(self, value: T) -> None:
        self._value = value
        self._observers: set = set()

    def get(self) -> T:
        track(self)
        return self._value

    def set(self, value: T) -> None:
        """Write a new value. Marshals through the dispatcher off the control thread."""
        if on_control_thread():
            self._set_direct(value)
        else:
            _dispatcher(lambda v=value: self._set_direct(v))

    def _set_direct(self, value: T) -> None:
        if self._assign(value):
            self._notify()

    def _assign(self, value: T) -> bool:
        """Store value without notifying. True if it changed."""
        old = self._value
        if old is value or old == value:
            return False
        self._value = value
        return True

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer._run()

    def _notify_from_any_thread(self) -> None:
        if on_control_thread():
            self._notify()
        else:
            _dispatcher(self._notify)

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    def __repr__(self) -> str:
        return f"Observable({self._value!r})"
