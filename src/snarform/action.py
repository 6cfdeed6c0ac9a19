"""Batched mutations.

Reactions invalidated inside an @action or `with transaction()` run once,
after the outermost scope exits, so they never see a half-applied update
(for example new list contents with a stale is_loading flag).
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, Iterator, ParamSpec, TypeVar

from snarform._tracking import begin_batch, end_batch

P = ParamSpec("P")
R = TypeVar("R")


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: run fn inside a batch."""

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        begin_batch()
        try:
            return fn(*args, **kwargs)
        finally:
            end_batch()

    return wrapper


@contextmanager
def transaction() -> Iterator[None]:
    """Context manager form of action.

    Usage:
        with transaction():
            state.is_loading.set(False)
            items.replace(data)
    """
    begin_batch()
    try:
        yield
    finally:
        end_batch()
