"""PagedReactiveList: a randomly indexable list loaded page by page.

The list is logically total_length long but only holds the pages somebody
asked for. Reading an unloaded index returns EMPTY and starts loading the
page that contains it; when the page lands, reactions that read the list
re-run and see the value.

Reload never cancels anything. It bumps the list version, which makes every
slot stale at once (still displayed through the raw sequence, but no longer
returned by get_item_at_index). Each fetch remembers the version it was
issued under; a response that comes back after a reload is dropped without
touching the slots. Only the loading counters move.

Fetches are keyed by (page_index, version), so the same page is never
requested twice concurrently within one version, while a reload can issue a
fresh request for a page whose stale fetch is still out.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, Iterable, Iterator, Sequence, TypeVar, Union

from snarform._versioning import UNSTAMPED, SlotStamps, VersionClock, resolved, spawn, utcnow
from snarform.action import transaction
from snarform.observable import ObservableList
from snarform.page import EMPTY, Page, response_metadata
from snarform.state import UNKNOWN_LENGTH, ListState, StateFields

logger = logging.getLogger("snarform.paged_list")

T = TypeVar("T")

PageProvider = Callable[[int, int], Union[Awaitable[Sequence[T]], Sequence[T]]]


class PagedReactiveList(StateFields, Generic[T]):
    """Lazily and partially populated reactive list.

    Usage:
        lst = PagedReactiveList(lambda size, index: api.page(size, index), 25)
        item = lst.get_item_at_index(130)   # EMPTY; page 5 is now loading
        ...
        lst.reload()                        # everything stale, nothing cleared
    """

    def __init__(self, provider: PageProvider[T], page_size: int, *, eager: bool = True) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._provider = provider
        self.page_size = page_size
        self._items: ObservableList[Any] = ObservableList()
        self._stamps = SlotStamps()
        self._clock = VersionClock()
        self._state = ListState()
        # Version whose response last set total_length.
        self._total_version = UNSTAMPED
        self._in_flight: dict[tuple[int, int], asyncio.Task] = {}
        self._pending = 0
        self._task: asyncio.Future | None = None
        if eager:
            self.load_page(0)

    @classmethod
    def from_sequence(cls, items: Iterable[T], page_size: int, *, eager: bool = True) -> PagedReactiveList[T]:
        source = list(items)

        def provider(size: int, page_index: int) -> Page[T]:
            start = page_index * size
            return Page(source[start:start + size], total_length=len(source))

        return cls(provider, page_size, eager=eager)

    @property
    def version(self) -> int:
        return self._clock.current

    @property
    def pending_count(self) -> int:
        """Outstanding fetches, stale ones included."""
        return self._pending

    @property
    def handle(self) -> asyncio.Future | None:
        """The most recently issued page fetch."""
        return self._task

    def is_fresh(self, index: int) -> bool:
        return self._stamps.is_fresh(index, self._clock.current)

    # --- reads that load ---

    def get_item_at_index(self, index: int) -> Any:
        """The value at index if it is fresh, else EMPTY (and load its page)."""
        version = self._clock.current
        length = len(self._items)
        if index < 0:
            return EMPTY
        if index < length and self._stamps.is_fresh(index, version):
            return self._items.peek()[index]
        total = self._known_total(version)
        if 0 <= total <= index:
            return EMPTY
        self.load_page(index // self.page_size)
        return EMPTY

    def get_page_at_index(self, page_index: int) -> list[Any]:
        """The page's slots, EMPTY where not fresh. Loads the page if needed."""
        if page_index < 0:
            return []
        version = self._clock.current
        length = len(self._items)
        total = self._known_total(version)
        start = page_index * self.page_size
        end = start + self.page_size
        if total >= 0:
            end = min(end, total)
            if start >= end:
                return []
        items = self._items.peek()
        page = [
            items[i] if i < length and self._stamps.is_fresh(i, version) else EMPTY
            for i in range(start, end)
        ]
        if not self._stamps.all_fresh(start, end, version):
            self.load_page(page_index)
        return page

    def _known_total(self, version: int) -> int:
        """total_length if a response of this version reported it, else -1."""
        total = self._state.total_length.get()
        return total if self._total_version == version else UNKNOWN_LENGTH

    def load_page(self, page_index: int) -> asyncio.Task:
        """Fetch one page under the current version, deduplicated."""
        version = self._clock.peek()
        key = (page_index, version)
        task = self._in_flight.get(key)
        if task is not None:
            return task
        logger.debug("Loading page %d (version %d)", page_index, version)
        task = spawn(self._fetch_page(page_index, version))
        self._in_flight[key] = task
        self._pending += 1
        self._task = task
        self._state.is_loading.set(True)
        return task

    def preload(self) -> asyncio.Future:
        """Make sure the first page is loaded."""
        if self._state.is_fully_loaded.peek() or self._stamps.is_fresh(0, self._clock.peek()):
            return resolved(Page(self.loaded_items(), metadata=self._state.metadata.peek()))
        return self.load_page(0)

    def get_next_page(self) -> asyncio.Future:
        """Load the page after the contiguously loaded prefix."""
        if self._state.is_fully_loaded.peek():
            return resolved(
                Page(
                    metadata=self._state.metadata.peek(),
                    total_length=self._state.total_length.peek(),
                )
            )
        prefix = self._stamps.fresh_prefix(self._clock.peek())
        return self.load_page(prefix // self.page_size)

    def reload(self, clear: bool = False, preload: bool = False) -> asyncio.Future:
        """Start a new version. Does not wait for anything.

        Without clear the old values stay in place (stale but displayable).
        With clear the slots and total_length are reset right away.
        """
        with transaction():
            version = self._clock.bump()
            if clear:
                self._items.clear()
                self._stamps.clear()
                self._state.total_length.set(UNKNOWN_LENGTH)
                self._state.metadata.set(None)
            self._state.is_fully_loaded.set(False)
            self._state.is_reloading.set(True)
            self._state.error.set(None)
        logger.debug("Reloaded to version %d (clear=%s)", version, clear)
        if preload:
            return self.load_page(0)
        return resolved(Page())

    # --- completion ---

    async def _fetch_page(self, page_index: int, version: int) -> Page[T]:
        try:
            result = self._provider(self.page_size, page_index)
            if inspect.isawaitable(result):
                result = await result
        except Exception as error:
            current = self._clock.is_current(version)
            with transaction():
                self._release(page_index, version)
                if current:
                    self._state.error.set(error)
                    self._state.is_reloading.set(False)
            if not current:
                logger.debug("Ignoring failure of stale page %d (version %d): %r", page_index, version, error)
                return Page()
            logger.warning("Page %d failed to load: %r", page_index, error)
            raise
        except BaseException:
            with transaction():
                self._release(page_index, version)
            raise

        page = result if isinstance(result, Page) else _as_page(result)
        with transaction():
            self._release(page_index, version)
            if self._clock.is_current(version):
                self._apply(page_index, version, page)
            else:
                logger.debug("Dropping stale page %d (version %d, now %d)", page_index, version, self._clock.peek())
        return page

    def _release(self, page_index: int, version: int) -> None:
        self._in_flight.pop((page_index, version), None)
        self._pending -= 1
        self._state.is_loading.set(self._pending > 0)

    def _apply(self, page_index: int, version: int, page: Page[T]) -> None:
        start = page_index * self.page_size
        data = list(page)
        metadata, total = response_metadata(page)
        if len(data) < self.page_size:
            # A short page is the last one.
            end = start + len(data)
            if total is None or total > end:
                total = end

        self._items.set_many(start, data, fill=EMPTY)
        self._stamps.stamp(start, len(data), version)
        if total is not None:
            self._state.total_length.set(total)
            self._total_version = version
            if len(self._items.peek()) > total:
                self._items.truncate(total)
                self._stamps.truncate(total)
        if metadata is not None:
            self._state.metadata.set(metadata)

        now = utcnow()
        self._state.error.set(None)
        self._state.is_reloading.set(False)
        self._state.loaded_at.set(now)
        self._refresh_fully_loaded(now)

    def _refresh_fully_loaded(self, now=None) -> None:
        total = self._state.total_length.peek()
        full = total >= 0 and self._stamps.all_fresh(0, total, self._clock.peek())
        if full and not self._state.is_fully_loaded.peek():
            self._state.fully_loaded_at.set(now or utcnow())
        self._state.is_fully_loaded.set(full)

    # --- local mutations ---

    def append(self, item: T) -> None:
        """Add an item created locally to the end of the collection."""
        with transaction():
            total = self._state.total_length.peek()
            if self._state.is_fully_loaded.peek():
                self._items.append(item)
                self._stamps.append(self._clock.peek())
            if total >= 0:
                self._state.total_length.set(total + 1)

    def remove(self, item: T) -> bool:
        """Remove item (by identity) if loaded. Returns whether it was."""
        for index, existing in enumerate(self._items.peek()):
            if existing is item:
                with transaction():
                    del self._items[index]
                    self._stamps.delete(index)
                    total = self._state.total_length.peek()
                    if total > 0:
                        self._state.total_length.set(total - 1)
                    self._refresh_fully_loaded()
                return True
        return False

    # --- sequence protocol (raw slots, stale values included) ---

    def __getitem__(self, index):
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __bool__(self) -> bool:
        return bool(self._items)

    def snapshot(self) -> list[Any]:
        return self._items.snapshot()

    def loaded_items(self) -> list[T]:
        """Fresh values only, in order."""
        version = self._clock.current
        items = self._items.snapshot()
        return [item for i, item in enumerate(items) if self._stamps.is_fresh(i, version)]

    def find(self, predicate: Callable[[Any], bool]) -> Any:
        return next((item for item in self._items if item is not EMPTY and predicate(item)), None)

    def __repr__(self) -> str:
        return (
            f"PagedReactiveList(page_size={self.page_size}, version={self._clock.peek()}, "
            f"loaded={self._stamps.fresh_prefix(self._clock.peek())}/{self._state.total_length.peek()}, "
            f"pending={self._pending})"
        )


def _as_page(result: Any) -> Page:
    if result is None:
        return Page()
    metadata, total_length = response_metadata(result)
    return Page(result, metadata=metadata, total_length=total_length)
