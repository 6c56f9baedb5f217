"""Timer and cancellation primitives.

A Clock schedules one-shot callbacks. RepeatingTimer builds a fixed-rate
repeating timer on top of any Clock, with a cancel that is final: once
cancel() returns, the callback never runs again, even if a tick was already
racing on another thread.

A Runner executes one unit of work and reports its outcome through a
done(value, error) callback, so the scheduler never needs to know whether
work ran inline, on a thread, or on an event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
import time
from typing import Any, Callable, Protocol

Done = Callable[[Any, "BaseException | None"], None]


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class Clock(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, fn: Callable[[], None]) -> Cancellable: ...


class Runner(Protocol):
    def submit(self, fn: Callable[[], Any], done: Done) -> None: ...


class ThreadClock:
    """Wall clock backed by daemon threading.Timer objects."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, fn: Callable[[], None]) -> threading.Timer:
        t = threading.Timer(delay, fn)
        t.daemon = True
        t.start()
        return t


class AsyncioClock:
    """Clock driven by an asyncio event loop. Use from the loop's thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, fn: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, fn)


class RepeatingTimer:
    """Calls fn every `interval` seconds on `clock` until cancelled.

    Ticks are scheduled at fixed rate from start(), so a slow callback does
    not push later ticks back.
    """

    __slots__ = ("_clock", "_interval", "_fn", "_lock", "_handle", "_due", "_cancelled")

    def __init__(self, clock: Clock, interval: float, fn: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")
        self._clock = clock
        self._interval = interval
        self._fn = fn
        self._lock = threading.Lock()
        self._handle: Cancellable | None = None
        self._due = 0.0
        self._cancelled = False

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._cancelled

    def start(self) -> RepeatingTimer:
        with self._lock:
            if self._cancelled:
                raise RuntimeError("cannot restart a cancelled timer")
            if self._handle is None:
                self._due = self._clock.now() + self._interval
                self._handle = self._clock.call_later(self._interval, self._tick)
        return self

    def _tick(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._due += self._interval
            delay = max(0.0, self._due - self._clock.now())
            self._handle = self._clock.call_later(delay, self._tick)
        self._fn()

    def cancel(self) -> None:
        """Stop for good. Safe to call more than once."""
        with self._lock:
            self._cancelled = True
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()


def _resolve(result: Any) -> Any:
    """Run an awaitable result to completion on a private event loop."""
    if inspect.isawaitable(result):
        return asyncio.run(_await(result))
    return result


async def _await(awaitable):
    return await awaitable


class InlineRunner:
    """Runs work synchronously on the calling thread.

    An awaitable result is run on a private event loop, so do not use this
    runner from inside a running loop; use AsyncioRunner there.
    """

    def submit(self, fn: Callable[[], Any], done: Done) -> None:
        try:
            value = _resolve(fn())
        except Exception as exc:
            done(None, exc)
        else:
            done(value, None)


class ThreadRunner:
    """Runs each unit of work in its own daemon thread.

    An awaitable result is run to completion on an event loop private to
    that thread.
    """

    def submit(self, fn: Callable[[], Any], done: Done) -> None:
        def _run() -> None:
            try:
                value = _resolve(fn())
            except Exception as exc:
                done(None, exc)
            else:
                done(value, None)

        threading.Thread(target=_run, daemon=True).start()


class AsyncioRunner:
    """Runs work on an event loop, awaiting awaitable results as tasks.

    fn() is called right away on the loop thread. If it returns an
    awaitable, done() fires when that task finishes. A cancelled task
    reports asyncio.CancelledError as its error.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Future] = set()

    def submit(self, fn: Callable[[], Any], done: Done) -> None:
        try:
            result = fn()
        except Exception as exc:
            done(None, exc)
            return
        if not inspect.isawaitable(result):
            done(result, None)
            return

        loop = self._loop or asyncio.get_running_loop()
        task = asyncio.ensure_future(result, loop=loop)
        self._tasks.add(task)

        def _finished(t: asyncio.Future) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                done(None, asyncio.CancelledError())
            elif t.exception() is not None:
                done(None, t.exception())
            else:
                done(t.result(), None)

        task.add_done_callback(_finished)

    def cancel_all(self) -> None:
        """Cancel every in-flight task this runner started."""
        for task in list(self._tasks):
            task.cancel()
