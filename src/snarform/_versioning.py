"""Version stamping and completion-handle helpers shared by the lists.

A list's version is a plain counter bumped on every reload. Each slot
records the version that last wrote it; a fetch captures the version it
was issued under and compares it on completion. There is no cancellation:
a stale result is simply not applied.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any, Coroutine

from snarform._tracking import untracked
from snarform.observable import Observable

UNSTAMPED = -1


def utcnow() -> datetime:
    return datetime.now(UTC)


class VersionClock:
    """Monotonic list version.

    Reading current tracks, so reactions that decided freshness against the
    old version re-run after a reload.
    """

    __slots__ = ("_value",)

    def __init__(self, initial: int = 0) -> None:
        self._value = Observable(initial)

    @property
    def current(self) -> int:
        return self._value.get()

    def peek(self) -> int:
        return self._value.peek()

    def bump(self) -> int:
        version = self._value.peek() + 1
        self._value.set(version)
        return version

    def is_current(self, version: int) -> bool:
        return version == self._value.peek()


class SlotStamps:
    """Per-slot version stamps, kept parallel to a list's backing slots."""

    __slots__ = ("_stamps",)

    def __init__(self) -> None:
        self._stamps: list[int] = []

    def __len__(self) -> int:
        return len(self._stamps)

    def stamp(self, start: int, count: int, version: int) -> None:
        end = start + count
        if end > len(self._stamps):
            self._stamps.extend([UNSTAMPED] * (end - len(self._stamps)))
        self._stamps[start:end] = [version] * count

    def is_fresh(self, index: int, version: int) -> bool:
        return 0 <= index < len(self._stamps) and self._stamps[index] == version

    def all_fresh(self, start: int, end: int, version: int) -> bool:
        if end > len(self._stamps):
            return False
        return all(s == version for s in self._stamps[start:end])

    def fresh_prefix(self, version: int) -> int:
        """Length of the leading run of slots stamped with version."""
        count = 0
        for s in self._stamps:
            if s != version:
                break
            count += 1
        return count

    def append(self, version: int) -> None:
        self._stamps.append(version)

    def delete(self, index: int) -> None:
        del self._stamps[index]

    def truncate(self, length: int) -> None:
        del self._stamps[length:]

    def clear(self) -> None:
        self._stamps.clear()


def _retrieve_exception(task: asyncio.Future) -> None:
    # Marks the exception as retrieved; the owner has already recorded it.
    if not task.cancelled():
        task.exception()


def spawn(coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
    """Schedule coro on the running loop outside any tracking context."""
    with untracked():
        task = asyncio.get_running_loop().create_task(coro)
    task.add_done_callback(_retrieve_exception)
    return task


def resolved(value: Any) -> asyncio.Future:
    """An already-completed handle."""
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future
