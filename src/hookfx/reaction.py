"""Reactions: side effects driven by Observable changes.

- autorun(fn): runs fn now and again whenever an observable it read changes.
- reaction(data_fn, effect_fn): tracks data_fn and calls effect_fn with the
  new value only when data_fn's result changes.

SearchPoller uses reaction() to re-declare its polling task whenever the
query or limit changes.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from hookfx._tracking import current_reaction

T = TypeVar("T")

_UNSET = object()


class Reaction:
    """A tracked function plus an optional effect fired on result change."""

    __slots__ = ("_fn", "_effect", "_dependencies", "_last", "_disposed")

    def __init__(self, fn: Callable, effect: Callable | None = None) -> None:
        self._fn = fn
        self._effect = effect
        self._dependencies: set = set()
        self._last = _UNSET
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _evaluate(self):
        self._clear_dependencies()
        token = current_reaction.set(self)
        try:
            return self._fn()
        finally:
            current_reaction.reset(token)

    def _run(self) -> None:
        if self._disposed:
            return
        value = self._evaluate()
        if self._effect is None:
            return
        if self._last is _UNSET or value != self._last:
            self._last = value
            self._effect(value)

    def _clear_dependencies(self) -> None:
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

    def dispose(self) -> None:
        """Stop this reaction and disconnect it from its dependencies."""
        self._disposed = True
        self._clear_dependencies()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Reaction({getattr(self._fn, '__name__', self._fn)!r}, {state})"


def autorun(fn: Callable[[], None]) -> Reaction:
    """Run fn immediately, then again whenever an observable it read changes.

    Usage:
        count = Observable(0)
        r = autorun(lambda: print(count.get()))   # prints 0
        count.set(1)                              # prints 1
        r.dispose()
    """
    r = Reaction(fn)
    r._run()
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> Reaction:
    """Track data_fn's observables; call effect_fn when its result changes.

    Without fire_immediately, data_fn runs once to establish dependencies
    and the effect waits for the first change.
    """
    r = Reaction(data_fn, effect_fn)
    if fire_immediately:
        r._run()
    else:
        r._last = r._evaluate()
    return r
