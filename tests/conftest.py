"""Deterministic clock and runner fixtures for scheduler tests."""

from __future__ import annotations

import heapq
import itertools

import pytest


class _Handle:
    __slots__ = ("due", "fn", "cancelled")

    def __init__(self, due, fn):
        self.due = due
        self.fn = fn
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualClock:
    """A Clock that only moves when advance() is called."""

    def __init__(self):
        self._now = 0.0
        self._queue = []
        self._seq = itertools.count()
        self.scheduled = 0

    def now(self):
        return self._now

    def call_later(self, delay, fn):
        handle = _Handle(self._now + delay, fn)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        self.scheduled += 1
        return handle

    def advance(self, seconds):
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            handle.fn()
        self._now = target

    @property
    def pending(self):
        return sum(1 for _, _, h in self._queue if not h.cancelled)


class DeferredRunner:
    """A Runner that holds work until the test completes it."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, done):
        self.jobs.append((fn, done))

    def complete(self, index):
        fn, done = self.jobs[index]
        try:
            value = fn()
        except Exception as exc:
            done(None, exc)
        else:
            done(value, None)

    def complete_all(self):
        for i in range(len(self.jobs)):
            self.complete(i)


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def deferred():
    return DeferredRunner()
