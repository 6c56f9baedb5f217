"""Exception hierarchy for hookfx.

Only programming errors (InvalidInterval) reach the caller as raised
exceptions. Runtime failures are reported through callbacks or recovered
locally and logged.
"""

from __future__ import annotations


class HookfxError(Exception):
    """Base class for all hookfx errors."""


class InvalidInterval(HookfxError, ValueError):
    """A task was declared with a non-positive or non-integer interval."""

    def __init__(self, interval_ms: object) -> None:
        super().__init__(f"interval_ms must be a positive int, got {interval_ms!r}")
        self.interval_ms = interval_ms


class FetchFailure(HookfxError):
    """A remote search call was rejected or timed out."""

    def __init__(self, query: str, limit: int) -> None:
        super().__init__(f"search failed for query={query!r} limit={limit}")
        self.query = query
        self.limit = limit


class StorageParseFailure(HookfxError):
    """A stored value could not be parsed into the cell's type."""

    def __init__(self, key: str, raw: str) -> None:
        super().__init__(f"unreadable stored value for {key!r}: {raw!r}")
        self.key = key
        self.raw = raw
