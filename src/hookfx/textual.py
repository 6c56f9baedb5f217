"""Textual integration for hookfx. Opt-in, requires textual.

task_scheduler(app) hands task results to the app thread. reaction() and
autorun() do the same for effects, drop them once the app has stopped
running, and ignore NoMatches raised by a query against an unmounted widget.
"""

import threading

from textual.css.query import NoMatches

from hookfx import autorun as _autorun, reaction as _reaction
from hookfx.scheduler import TaskScheduler


def _on_app_thread(app, fn):
    app_thread = threading.current_thread()

    def _apply(*args):
        if not app.is_running:
            return
        try:
            fn(*args)
        except NoMatches:
            pass  # widget already gone

    def _deliver(*args):
        if threading.current_thread() is app_thread:
            _apply(*args)
        else:
            app.call_from_thread(_apply, *args)

    return _deliver


def reaction(app, data_fn, effect_fn, *, fire_immediately=False):
    """reaction() whose effect runs on the app thread. Create from the app thread."""
    return _reaction(data_fn, _on_app_thread(app, effect_fn), fire_immediately=fire_immediately)


def autorun(app, fn):
    """autorun() whose body runs on the app thread. Create from the app thread."""
    return _autorun(_on_app_thread(app, fn))


def task_scheduler(app, **kwargs) -> TaskScheduler:
    """A TaskScheduler delivering task results on the app thread.

    Create it from the app thread (e.g. in on_mount) and stop its tasks in
    on_unmount.
    """
    return TaskScheduler(dispatch=app.call_from_thread, **kwargs)
