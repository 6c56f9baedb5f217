"""Search polling: re-run a remote search on a timer, restart on new inputs.

SearchPoller keeps query and limit in Observables. A reaction over them
re-declares the polling task, so a changed query cancels the old timer,
fetches right away, and polls on the new schedule. A failed fetch leaves
the last good results in place.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Awaitable, Callable, Hashable, Protocol

from hookfx.errors import FetchFailure
from hookfx.observable import Observable
from hookfx.reaction import Reaction, reaction
from hookfx.scheduler import TaskScheduler, validate_interval

logger = logging.getLogger("hookfx.search")

LIMITS = (6, 12, 18, 24, 30)
DEFAULT_QUERY = ""
DEFAULT_LIMIT = 12
DEFAULT_POLL_INTERVAL_MS = 30_000


@dataclass(slots=True, frozen=True)
class SearchItem:
    id: str
    title: str
    url: str
    preview_url: str
    rating: str


class SearchClient(Protocol):
    """A remote search. May return the items directly or an awaitable of them."""

    def search(
        self, query: str, limit: int
    ) -> Sequence[SearchItem] | Awaitable[Sequence[SearchItem]]: ...


def _coerce_limit(limit: int | str) -> int:
    value = int(limit)
    if value <= 0:
        raise ValueError(f"limit must be positive, got {limit!r}")
    return value


class SearchPoller:
    """Polls `client.search(query, limit)` every `poll_interval_ms`.

    Usage:
        with SearchPoller(scheduler, client, query="cats") as poller:
            autorun(lambda: render(poller.results.get()))
            poller.set_limit("24")
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        client: SearchClient,
        *,
        query: str = DEFAULT_QUERY,
        limit: int | str = DEFAULT_LIMIT,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        task_id: Hashable = "search",
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.client = client
        self.task_id = task_id
        self.poll_interval_ms = validate_interval(poll_interval_ms)
        self.query: Observable[str] = Observable(query)
        self.limit: Observable[int] = Observable(_coerce_limit(limit))
        self.results: Observable[list[SearchItem]] = Observable([])
        self._on_error = on_error
        self._reaction: Reaction | None = None

    def start(self) -> SearchPoller:
        if self._reaction is None:
            self._reaction = reaction(
                lambda: (self.query.get(), self.limit.get()),
                self._declare,
                fire_immediately=True,
            )
        return self

    def stop(self) -> None:
        if self._reaction is not None:
            self._reaction.dispose()
            self._reaction = None
        self.scheduler.stop(self.task_id)

    def set_query(self, query: str) -> None:
        self.query.set(query)

    def set_limit(self, limit: int | str) -> None:
        self.limit.set(_coerce_limit(limit))

    def _declare(self, params: tuple[str, int]) -> None:
        self.scheduler.declare(
            self.task_id,
            params,
            self.poll_interval_ms,
            self._fetch,
            on_result=self._publish,
            on_error=self._report,
        )

    def _fetch(self, query: str, limit: int):
        try:
            found = self.client.search(query, limit)
        except Exception as exc:
            raise FetchFailure(query, limit) from exc
        if inspect.isawaitable(found):
            return self._fetch_async(found, query, limit)
        return list(found)

    async def _fetch_async(self, pending, query: str, limit: int) -> list[SearchItem]:
        try:
            return list(await pending)
        except Exception as exc:
            raise FetchFailure(query, limit) from exc

    def _publish(self, items: list[SearchItem]) -> None:
        self.results.set(items)

    def _report(self, error: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(error)
        else:
            logger.error("%s: %r", error, error.__cause__)

    def __enter__(self) -> SearchPoller:
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()
