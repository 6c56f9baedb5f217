"""Dependency tracking for reactions.

A contextvar holds the reaction currently being evaluated. Any
Observable.get() made while it is set registers the observable as one of
that reaction's dependencies.
"""

from __future__ import annotations

import contextvars
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hookfx.reaction import Reaction

current_reaction: contextvars.ContextVar[Reaction | None] = contextvars.ContextVar(
    "current_reaction", default=None
)


def track(observable) -> None:
    """Register observable as a dependency of the running reaction, if any."""
    reaction = current_reaction.get()
    if reaction is not None:
        observable._observers.add(reaction)
        reaction._dependencies.add(observable)
