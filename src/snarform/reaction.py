"""Reactions: side effects re-run when the observables they read change.

- autorun(fn): runs fn now and again whenever anything it read changes.
- reaction(data_fn, effect_fn): re-evaluates data_fn on change and calls
  effect_fn only when its result differs from the previous one.

A reaction invalidated while it is still running (for instance because a
list read inside it kicked off a load that flipped is_loading) does not
recurse; it runs once more after the current run returns.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from snarform._tracking import current_derivation

T = TypeVar("T")

_UNSET = object()


class Reaction:
    """An eager derivation. Call dispose() to stop it."""

    __slots__ = ("_fn", "_dependencies", "_disposed", "_running", "_rerun")

    def __init__(self, fn: Callable[[], None]) -> None:
        self._fn = fn
        self._dependencies: set = set()
        self._disposed = False
        self._running = False
        self._rerun = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _run(self) -> None:
        if self._disposed:
            return
        if self._running:
            self._rerun = True
            return
        self._running = True
        try:
            while True:
                self._rerun = False
                self._evaluate()
                if not self._rerun or self._disposed:
                    break
        finally:
            self._running = False

    def _evaluate(self) -> None:
        self._drop_dependencies()
        token = current_derivation.set(self)
        try:
            self._fn()
        finally:
            current_derivation.reset(token)

    def _drop_dependencies(self) -> None:
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

    def dispose(self) -> None:
        self._disposed = True
        self._drop_dependencies()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        name = getattr(self._fn, "__name__", type(self._fn).__name__)
        return f"{type(self).__name__}({name}, {state})"


class _DataReaction(Reaction):
    """reaction(data_fn, effect_fn): effect fires on changed results only."""

    __slots__ = ("_effect_fn", "_last_value")

    def __init__(self, data_fn: Callable[[], T], effect_fn: Callable[[T], None]) -> None:
        super().__init__(data_fn)
        self._effect_fn = effect_fn
        self._last_value = _UNSET

    def _evaluate(self) -> None:
        self._drop_dependencies()
        token = current_derivation.set(self)
        try:
            value = self._fn()
        finally:
            current_derivation.reset(token)
        if self._last_value is _UNSET or value != self._last_value:
            self._last_value = value
            self._effect_fn(value)


def autorun(fn: Callable[[], None]) -> Reaction:
    """Run fn immediately, then whenever an observable it read changes.

    Usage:
        lst = ReactiveList(provider)
        r = autorun(lambda: render(lst.snapshot(), lst.is_loading))
        ...
        r.dispose()
    """
    r = Reaction(fn)
    r._run()
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> Reaction:
    """Track data_fn; call effect_fn with its result whenever that changes.

    Without fire_immediately the first result only seeds the comparison.
    """
    r = _DataReaction(data_fn, effect_fn)
    if not fire_immediately:
        token = current_derivation.set(r)
        try:
            r._last_value = data_fn()
        finally:
            current_derivation.reset(token)
        return r
    r._run()
    return r
