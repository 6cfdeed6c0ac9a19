"""ReactiveList: a reactive sequence filled by one zero-argument provider.

At most one provider call is in flight at a time; reload() and preload()
while loading hand back the pending handle instead of starting another.
A successful response replaces the contents and the state fields in one
transaction. A failed one records the error, keeps the previous contents
(unless the caller asked for a clearing reload) and rejects the handle.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, Iterable, Iterator, Sequence, TypeVar, Union

from snarform._versioning import resolved, spawn, utcnow
from snarform.action import transaction
from snarform.observable import ObservableList
from snarform.page import Page, response_metadata
from snarform.state import UNKNOWN_LENGTH, ListState, StateFields

logger = logging.getLogger("snarform.reactive_list")

T = TypeVar("T")

ListProvider = Callable[[], Union[Awaitable[Sequence[T]], Sequence[T]]]


class ReactiveList(StateFields, Generic[T]):
    """Reactive list around a single provider call.

    Usage:
        lst = ReactiveList(lambda: repository.list_items())
        autorun(lambda: render(lst.snapshot(), lst.is_loading, lst.error))
        await lst.reload()
    """

    def __init__(self, provider: ListProvider[T], *, eager: bool = True) -> None:
        self._provider = provider
        self._items: ObservableList[T] = ObservableList()
        self._state = ListState()
        self._task: asyncio.Future | None = None
        if eager:
            self.reload()

    @classmethod
    def from_sequence(cls, items: Iterable[T], *, eager: bool = True) -> ReactiveList[T]:
        source = Page(items)
        return cls(lambda: source, eager=eager)

    @property
    def handle(self) -> asyncio.Future | None:
        """The latest load's completion handle."""
        return self._task

    def preload(self) -> asyncio.Future:
        """Load once. Later calls resolve immediately with the current items."""
        if self._task is not None and not self._task.done():
            return self._task
        if self._state.loaded_at.peek() is None:
            return self.reload()
        return resolved(Page(self._items.peek(), metadata=self._state.metadata.peek()))

    def reload(self, clear: bool = False) -> asyncio.Future:
        """Fetch again. clear empties the contents first, synchronously."""
        if clear:
            with transaction():
                self._items.clear()
                self._state.total_length.set(UNKNOWN_LENGTH)
                self._state.is_fully_loaded.set(False)
                self._state.fully_loaded_at.set(None)
        if self._task is not None and not self._task.done():
            return self._task
        with transaction():
            self._state.is_loading.set(True)
            self._state.is_reloading.set(self._state.loaded_at.peek() is not None)
        self._task = spawn(self._load())
        return self._task

    async def _load(self) -> Sequence[T]:
        try:
            result = self._provider()
            if inspect.isawaitable(result):
                result = await result
        except Exception as error:
            logger.warning("List load failed: %r", error)
            with transaction():
                self._state.error.set(error)
                self._state.is_loading.set(False)
                self._state.is_reloading.set(False)
            raise
        except BaseException:
            with transaction():
                self._state.is_loading.set(False)
                self._state.is_reloading.set(False)
            raise
        data = list(result) if result is not None else []
        metadata, total_length = response_metadata(result)
        now = utcnow()
        with transaction():
            self._items.replace(data)
            if metadata is not None:
                self._state.metadata.set(metadata)
            self._state.total_length.set(len(data) if total_length is None else total_length)
            self._state.error.set(None)
            self._state.loaded_at.set(now)
            self._state.fully_loaded_at.set(now)
            self._state.is_fully_loaded.set(True)
            self._state.is_loading.set(False)
            self._state.is_reloading.set(False)
        return result if result is not None else Page()

    # --- local mutations ---

    def append(self, item: T) -> None:
        with transaction():
            self._items.append(item)
            self._bump_length(1)

    def remove(self, item: T) -> bool:
        """Remove item (by identity) if present. Returns whether it was."""
        for index, existing in enumerate(self._items.peek()):
            if existing is item:
                with transaction():
                    del self._items[index]
                    self._bump_length(-1)
                return True
        return False

    def _bump_length(self, delta: int) -> None:
        total = self._state.total_length.peek()
        if total >= 0:
            self._state.total_length.set(max(total + delta, 0))

    # --- sequence protocol ---

    def __getitem__(self, index):
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __bool__(self) -> bool:
        return bool(self._items)

    def snapshot(self) -> list[T]:
        return self._items.snapshot()

    def find(self, predicate: Callable[[T], bool]) -> Any:
        return next((item for item in self._items if predicate(item)), None)

    def __repr__(self) -> str:
        return (
            f"ReactiveList({self._items.peek()!r}, loading={self._state.is_loading.peek()}, "
            f"error={self._state.error.peek()!r})"
        )
