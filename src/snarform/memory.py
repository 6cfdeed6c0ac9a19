"""MemoryRepository: an in-process repository for tests, demos and prototyping.

Items live in a plain list. Every read returns detached copies, the way a
network response would, so the IdentityCache has real merging to do.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Callable, Iterable, Sequence, TypeVar, Union

from snarform.exceptions import EntityNotFoundError, QueryError
from snarform.model import assign_fields, copy_entity, entity_fields, entity_id, field_value
from snarform.page import Page
from snarform.repository import ListOptions, Repository

T = TypeVar("T")

FilterFactory = Callable[[Any], Callable[[Any], bool]]
SortKey = Union[str, Callable[[Any], Any]]
SortConfig = Union[SortKey, Sequence[SortKey]]


def _sorted(items: list[Any], config: SortConfig, reverse: bool) -> list[Any]:
    keys: list[SortKey] = [config] if isinstance(config, str) or callable(config) else list(config)
    # Stable sorts applied from the least significant key to the most.
    for key in reversed(keys):
        descending = reverse
        if isinstance(key, str):
            name = key.strip()
            if name.startswith("-"):
                name = name[1:]
                descending = not descending
            key_fn = lambda item, name=name, d=descending: _sort_value(field_value(item, name), d)  # noqa: E731
        else:
            key_fn = lambda item, fn=key, d=descending: _sort_value(fn(item), d)  # noqa: E731
        items = sorted(items, key=key_fn, reverse=descending)
    return items


def _sort_value(value: Any, descending: bool) -> tuple[bool, Any]:
    # None sorts last in either direction.
    missing = value is None
    return (not missing if descending else missing, 0 if missing else value)


class MemoryRepository(Repository[T]):
    """In-memory repository with named filters, sorts and a search function.

    Parameters
    ----------
    data : iterable
        Initial items.
    filters : dict
        Filter name -> factory taking the filter value and returning a
        predicate.
    sorts : dict
        Sort name -> field name ("-field" for descending), key callable, or a
        list of those applied in priority order.
    search : callable
        Factory taking the query and returning a predicate.
    delay : float
        Seconds every call sleeps before answering.
    """

    def __init__(
        self,
        data: Iterable[T] = (),
        *,
        filters: dict[str, FilterFactory] | None = None,
        sorts: dict[str, SortConfig] | None = None,
        search: FilterFactory | None = None,
        delay: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.filters = dict(filters or {})
        self.sorts = dict(sorts or {})
        self.search = search
        self.delay = delay
        self._ids = itertools.count(1)
        self._data: list[T] = []
        self.set_data(data)

    def set_data(self, data: Iterable[T]) -> None:
        self._data = [copy_entity(item) for item in data]

    @property
    def data(self) -> list[T]:
        return [copy_entity(item) for item in self._data]

    async def _pause(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)

    def _find_index(self, key: Any) -> int:
        for index, stored in enumerate(self._data):
            if entity_id(stored, self.id_key) == key:
                return index
        return -1

    def _query(self, options: ListOptions) -> list[T]:
        data = list(self._data)
        for name, value in options.filters.items():
            factory = self.filters.get(name)
            if factory is None:
                raise QueryError(f"Repository has no filter named {name!r}")
            predicate = factory(value)
            data = [item for item in data if predicate(item)]
        if options.sort:
            config = self.sorts.get(options.sort)
            if config is None:
                raise QueryError(f"Repository has no sort named {options.sort!r}")
            data = _sorted(data, config, options.reverse)
        elif options.reverse:
            data.reverse()
        if options.search:
            if self.search is None:
                raise QueryError("Repository has no search function")
            predicate = self.search(options.search)
            data = [item for item in data if predicate(item)]
        return data

    async def _fetch_list(self, options: ListOptions, page_index: int | None) -> Page[T]:
        await self._pause()
        data = self._query(options)
        total = len(data)
        if page_index is not None and options.page_size:
            start = page_index * options.page_size
            data = data[start:start + options.page_size]
        return Page((copy_entity(item) for item in data), total_length=total)

    async def _fetch_one(self, key: Any) -> T | None:
        await self._pause()
        index = self._find_index(key)
        return copy_entity(self._data[index]) if index >= 0 else None

    async def _create(self, item: T) -> T:
        await self._pause()
        stored = copy_entity(item)
        key = entity_id(stored, self.id_key)
        if key is None:
            key = str(next(self._ids))
            while self._find_index(key) >= 0:
                key = str(next(self._ids))
            assign_fields(stored, {self.id_key: key})
        index = self._find_index(key)
        if index >= 0:
            self._data[index] = stored
        else:
            self._data.append(stored)
        return copy_entity(stored)

    async def _modify(self, item: T, values: dict[str, Any] | None) -> T:
        await self._pause()
        key = entity_id(item, self.id_key)
        index = self._find_index(key)
        if index < 0:
            raise EntityNotFoundError(key)
        stored = self._data[index]
        assign_fields(stored, values if values is not None else entity_fields(item))
        return copy_entity(stored)

    async def _remove(self, item: T) -> None:
        await self._pause()
        index = self._find_index(entity_id(item, self.id_key))
        if index >= 0:
            del self._data[index]

    async def _remove_all(self, options: ListOptions) -> list[T]:
        await self._pause()
        removed = self._query(options)
        removed_ids = {id(item) for item in removed}
        self._data = [item for item in self._data if id(item) not in removed_ids]
        return [copy_entity(item) for item in removed]
