"""Dependency tracking and batching for the reactive core.

The derivation currently being evaluated lives in a contextvar. Any
observable read while it is set registers itself as a dependency.

Mutations inside a batch (see action.py) queue their observers and run
them once when the outermost batch exits.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from snarform.reaction import Reaction

current_derivation: contextvars.ContextVar[Reaction | None] = contextvars.ContextVar(
    "snarform_current_derivation", default=None
)

_batch_depth: int = 0

# Insertion-ordered so reactions flush in the order they were invalidated.
_pending: dict[Reaction, None] = {}


def track(source, observers: set) -> None:
    """Register the running derivation (if any) as an observer of source."""
    derivation = current_derivation.get()
    if derivation is not None:
        observers.add(derivation)
        derivation._dependencies.add(source)


def notify(observers: Iterable[Reaction]) -> None:
    """Run or queue every observer of a changed source."""
    for observer in list(observers):
        if _batch_depth > 0:
            _pending[observer] = None
        else:
            observer._run()


def begin_batch() -> None:
    global _batch_depth
    _batch_depth += 1


def end_batch() -> None:
    global _batch_depth
    _batch_depth -= 1
    if _batch_depth == 0:
        _flush()


def _flush() -> None:
    # Observers may invalidate further observers while running.
    while _pending:
        batch = list(_pending)
        _pending.clear()
        for observer in batch:
            observer._run()


@contextmanager
def untracked() -> Iterator[None]:
    """Suspend dependency tracking for the enclosed block.

    Tasks created inside inherit the empty tracking context, so work they
    do later is never attributed to the derivation that spawned them.
    """
    token = current_derivation.set(None)
    try:
        yield
    finally:
        current_derivation.reset(token)


def get_pending_count() -> int:
    """Number of reactions waiting for the current batch to end."""
    return len(_pending)
