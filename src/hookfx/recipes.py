"""Ready-made tasks and cells: a ticking clock and a stored counter."""

from __future__ import annotations

import itertools
import random
from datetime import datetime
from typing import Callable, Hashable

from hookfx.cell import Cell, CellScope
from hookfx.observable import Observable
from hookfx.scheduler import TaskScheduler

ONE_SECOND_MS = 1000
ONE_DAY_MS = 1000 * 60 * 60 * 24

_clock_ids = itertools.count(1)


def current_datetime(
    scheduler: TaskScheduler,
    tick_ms: int,
    *,
    task_id: Hashable | None = None,
    now: Callable[[], datetime] = datetime.now,
) -> Observable[datetime]:
    """An Observable holding now(), refreshed every tick_ms.

    Every call gets its own task. The default id is
    ("current-datetime", tick_ms, n) with n unique per call; pass task_id to
    stop this clock on its own with scheduler.stop(task_id).

    The task's first run happens at declare and may replace the initial
    value, so observers can fire once right away.
    """
    if task_id is None:
        task_id = ("current-datetime", tick_ms, next(_clock_ids))
    value = Observable(now())
    scheduler.declare(task_id, (), tick_ms, now, on_result=value.set)
    return value


def random_count(rng: random.Random | None = None) -> int:
    return (rng or random).randint(1, 10)


def stored_count(
    scope: CellScope,
    key: str,
    *,
    default: Callable[[], int] = random_count,
) -> Cell[int]:
    """An int cell under key, seeded with a random 1..10 when storage is empty."""
    return scope.open(key, default, parse=int, format=str)
