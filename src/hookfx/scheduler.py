"""TaskScheduler: named periodic tasks that restart when their inputs change.

declare() is the single entry point. A new id starts a task, changed
parameters or interval restart it, and an identical re-declaration does
nothing. stop() tears a task down for good.

Every run is tagged with the task's generation. A result that comes back
after its generation was superseded (restart or stop) is dropped, so a slow
response for old parameters can never overwrite a newer one.
"""

from __future__ import annotations

import functools
import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterator

from hookfx.errors import InvalidInterval
from hookfx.timers import Clock, RepeatingTimer, Runner, ThreadClock, ThreadRunner

logger = logging.getLogger("hookfx.scheduler")

ResultCallback = Callable[[Any], None]
ErrorCallback = Callable[[BaseException], None]


@dataclass(slots=True)
class Task:
    """Bookkeeping for one declared task. Owned by its TaskScheduler."""

    id: Hashable
    parameters: tuple
    interval_ms: int
    work: Callable[..., Any]
    on_result: ResultCallback | None = None
    on_error: ErrorCallback | None = None
    generation: int = 1
    timer: RepeatingTimer | None = None


def validate_interval(interval_ms: object) -> int:
    if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
        raise InvalidInterval(interval_ms)
    return interval_ms


class TaskScheduler:
    """Owns zero or more named periodic tasks.

    clock and runner default to daemon threads. dispatch, when given, is
    used to hand completions that arrive on other threads back to the
    thread that created the scheduler (e.g. a UI's call_from_thread).
    """

    def __init__(
        self,
        clock: Clock | None = None,
        runner: Runner | None = None,
        dispatch: Callable[[Callable[[], None]], Any] | None = None,
    ) -> None:
        self._clock = clock if clock is not None else ThreadClock()
        self._runner = runner if runner is not None else ThreadRunner()
        self._dispatch = dispatch
        self._control_thread = threading.current_thread()
        self._lock = threading.RLock()
        self._tasks: dict[Hashable, Task] = {}
        # Shared across tasks so a re-declared id never reuses a stopped one's generation.
        self._generations = itertools.count(1)

    # --- Public API ---

    def declare(
        self,
        task_id: Hashable,
        parameters: tuple | list,
        interval_ms: int,
        work: Callable[..., Any],
        *,
        on_result: ResultCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        """Start, restart or keep the task `task_id`.

        Re-declaring with equal parameters and interval is a no-op: the timer
        keeps its phase and work does not run again.
        """
        interval_ms = validate_interval(interval_ms)
        parameters = tuple(parameters)

        with self._lock:
            task = self._tasks.get(task_id)
            if task is not None:
                if task.parameters == parameters and task.interval_ms == interval_ms:
                    return
                task.timer.cancel()
                task.generation = next(self._generations)
                task.parameters = parameters
                task.interval_ms = interval_ms
                task.work = work
                task.on_result = on_result
                task.on_error = on_error
                logger.debug(
                    "Restarting task %r gen=%d params=%r interval=%dms",
                    task_id, task.generation, parameters, interval_ms,
                )
            else:
                task = Task(
                    task_id, parameters, interval_ms, work, on_result, on_error,
                    generation=next(self._generations),
                )
                self._tasks[task_id] = task
                logger.debug(
                    "Starting task %r params=%r interval=%dms", task_id, parameters, interval_ms
                )

            generation = task.generation
            task.timer = RepeatingTimer(
                self._clock,
                interval_ms / 1000,
                functools.partial(self._run, task_id, generation),
            ).start()

        self._run(task_id, generation)

    def stop(self, task_id: Hashable) -> None:
        """Cancel and forget `task_id`. Unknown ids are ignored."""
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                return
            task.timer.cancel()
        logger.debug("Stopped task %r", task_id)

    def stop_all(self) -> None:
        with self._lock:
            ids = list(self._tasks)
        for task_id in ids:
            self.stop(task_id)

    close = stop_all

    @contextmanager
    def running(
        self,
        task_id: Hashable,
        parameters: tuple | list,
        interval_ms: int,
        work: Callable[..., Any],
        *,
        on_result: ResultCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Iterator[TaskScheduler]:
        """Declare a task for the duration of a with-block; stop it on any exit."""
        self.declare(
            task_id, parameters, interval_ms, work, on_result=on_result, on_error=on_error
        )
        try:
            yield self
        finally:
            self.stop(task_id)

    def __enter__(self) -> TaskScheduler:
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop_all()

    # --- Introspection ---

    def __contains__(self, task_id: Hashable) -> bool:
        with self._lock:
            return task_id in self._tasks

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def active_ids(self) -> list[Hashable]:
        with self._lock:
            return list(self._tasks)

    def generation(self, task_id: Hashable) -> int | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.generation if task is not None else None

    def parameters(self, task_id: Hashable) -> tuple | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.parameters if task is not None else None

    # --- Internals ---

    def _current(self, task_id: Hashable, generation: int) -> Task | None:
        task = self._tasks.get(task_id)
        if task is None or task.generation != generation:
            return None
        return task

    def _run(self, task_id: Hashable, generation: int) -> None:
        """Invoke the task's work once, if `generation` is still current."""
        with self._lock:
            task = self._current(task_id, generation)
            if task is None:
                logger.debug("Skipping superseded tick for %r gen=%d", task_id, generation)
                return
            work, parameters = task.work, task.parameters

        done = functools.partial(self._on_done, task_id, generation)
        try:
            self._runner.submit(functools.partial(work, *parameters), done)
        except Exception:
            logger.exception("Failed to submit work for task %r", task_id)

    def _on_done(
        self, task_id: Hashable, generation: int, value: Any, error: BaseException | None
    ) -> None:
        complete = functools.partial(self._complete, task_id, generation, value, error)
        if self._dispatch is None or threading.current_thread() is self._control_thread:
            complete()
            return
        try:
            self._dispatch(complete)
        except Exception:
            logger.exception("Failed to dispatch completion for task %r", task_id)

    def _complete(
        self, task_id: Hashable, generation: int, value: Any, error: BaseException | None
    ) -> None:
        with self._lock:
            task = self._current(task_id, generation)
            if task is None:
                logger.debug("Discarding stale result for %r gen=%d", task_id, generation)
                return
            on_result, on_error = task.on_result, task.on_error

        try:
            if error is None:
                if on_result is not None:
                    on_result(value)
            elif on_error is not None:
                on_error(error)
            else:
                logger.warning("Task %r failed: %r", task_id, error)
        except Exception:
            logger.exception("Callback for task %r raised", task_id)
