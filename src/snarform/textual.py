"""Textual integration. Opt-in, requires textual.

Lists and entities are meant to be read from a UI loop; this module ties
reactions to a Textual app so that re-renders skip while the app is not
running or is swapping widgets, tolerate widgets that have not been
mounted yet, and hop onto the app thread when triggered from a worker.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from textual.css.query import NoMatches

from snarform import reaction as _reaction
from snarform.reaction import Reaction

# id(app) of every app currently inside pause().
_paused_apps: set[int] = set()


@contextmanager
def pause(app) -> Iterator[None]:
    """Suspend guarded reactions for app while its widget tree is replaced."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    return app.is_running and id(app) not in _paused_apps


def _guard(app, effect: Callable[..., None]) -> Callable[..., None]:
    main = threading.get_ident()

    def _call(*args: Any) -> None:
        try:
            effect(*args)
        except NoMatches:
            pass

    def _guarded(*args: Any) -> None:
        if not is_safe(app):
            return
        if threading.get_ident() != main:
            app.call_from_thread(_call, *args)
        else:
            _call(*args)

    return _guarded


def reaction(app, data_fn, effect_fn, *, fire_immediately: bool = False) -> Reaction:
    """reaction() whose effect is guarded for app."""
    return _reaction(data_fn, _guard(app, effect_fn), fire_immediately=fire_immediately)


class _GuardedAutorun(Reaction):
    """autorun body guarded for app.

    A skipped run keeps the previous dependencies, so the body runs again
    on the next change after the app becomes safe.
    """

    __slots__ = ("_app", "_main")

    def __init__(self, app, fn: Callable[[], None]) -> None:
        super().__init__(fn)
        self._app = app
        self._main = threading.get_ident()

    def _evaluate(self) -> None:
        if not is_safe(self._app):
            return
        if threading.get_ident() != self._main:
            self._app.call_from_thread(self._evaluate_safely)
        else:
            self._evaluate_safely()

    def _evaluate_safely(self) -> None:
        try:
            Reaction._evaluate(self)
        except NoMatches:
            pass


def autorun(app, fn) -> Reaction:
    """autorun() whose body is guarded for app."""
    r = _GuardedAutorun(app, fn)
    r._run()
    return r


def watch_list(app, lst, render: Callable[[Any], None]) -> Reaction:
    """Re-render lst whenever its contents or loading state change.

    render receives the list and should read what it displays from it
    (snapshot(), get_item_at_index(), is_loading, error, ...). Reads are
    tracked, so unloaded slots requested during render re-render the view
    once their page arrives.
    """
    return autorun(app, lambda: render(lst))
