"""hookfx: periodic tasks with guaranteed cleanup, and write-back persisted cells."""

from importlib.metadata import version as _version

__version__ = _version("hookfx")

from hookfx.errors import FetchFailure, HookfxError, InvalidInterval, StorageParseFailure
from hookfx.observable import Observable, set_dispatcher
from hookfx.reaction import Reaction, autorun, reaction
from hookfx.timers import (
    AsyncioClock,
    AsyncioRunner,
    InlineRunner,
    RepeatingTimer,
    ThreadClock,
    ThreadRunner,
)
from hookfx.scheduler import Task, TaskScheduler
from hookfx.storage import JsonFileStorage, MemoryStorage, Storage
from hookfx.cell import Cell, CellScope
from hookfx.search import SearchClient, SearchItem, SearchPoller
from hookfx.recipes import current_datetime, random_count, stored_count
# textual NOT auto-imported — opt-in only

__all__ = [
    "HookfxError",
    "InvalidInterval",
    "FetchFailure",
    "StorageParseFailure",
    "Observable",
    "set_dispatcher",
    "Reaction",
    "autorun",
    "reaction",
    "AsyncioClock",
    "AsyncioRunner",
    "InlineRunner",
    "RepeatingTimer",
    "ThreadClock",
    "ThreadRunner",
    "Task",
    "TaskScheduler",
    "Storage",
    "MemoryStorage",
    "JsonFileStorage",
    "Cell",
    "CellScope",
    "SearchClient",
    "SearchItem",
    "SearchPoller",
    "current_datetime",
    "random_count",
    "stored_count",
]
