"""Collections: query views over a repository that own their list.

A view builds its list the first time ``data`` is read and keeps it for
its lifetime. Modifiers (sort, filter, reverse, search, with_page_size)
return new views with their own lists; the repository and its identity
cache are shared, so the same entity shows up as the same object in all
of them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Iterator, TypeVar

from snarform.config import CacheConfig
from snarform.model import entity_id
from snarform.paged_list import PagedReactiveList
from snarform.reactive_list import ReactiveList
from snarform.repository import EmptyRepository, ListOptions, Repository

logger = logging.getLogger("snarform.collection")

T = TypeVar("T")


def _matches(item: Any, id_key: str) -> Callable[[Any], bool]:
    key = entity_id(item, id_key)
    return lambda other: other is item or (key is not None and entity_id(other, id_key) == key)


class Collection(Generic[T]):
    """Unpaginated view; data is a ReactiveList."""

    def __init__(
        self,
        repository: Repository[T],
        options: ListOptions | None = None,
        *,
        config: CacheConfig | None = None,
    ) -> None:
        self._repository = repository
        self._options = options or ListOptions()
        self._config = config or repository.config
        self._data: ReactiveList[T] | PagedReactiveList[T] | None = None

    @property
    def repository(self) -> Repository[T]:
        return self._repository

    @property
    def options(self) -> ListOptions:
        return self._options

    @property
    def data(self) -> ReactiveList[T]:
        if self._data is None:
            options = self._options
            self._data = ReactiveList(
                lambda: self._repository.list_items(options),
                eager=self._config.eager,
            )
        return self._data

    @property
    def is_loading(self) -> bool:
        return self.data.is_loading

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self) -> Iterator[T]:
        return iter(self.data)

    def find(self, predicate: Callable[[T], bool]) -> T | None:
        return self.data.find(predicate)

    def get_by_id(self, key: Any, reload: bool = False):
        return self._repository.get_by_id(key, reload=reload)

    async def _settled_data(self):
        data = self.data
        if data.is_loading and data.handle is not None:
            await data.handle
        return data

    async def add(self, item: T, append: bool = False) -> T:
        result = await self._repository.add(item)
        if append:
            try:
                data = await self._settled_data()
            except Exception:
                logger.warning("List failed to load; cannot append %r", result)
                return result
            if not any(existing is result for existing in data.snapshot()):
                data.append(result)
        return result

    async def update(self, item: T, values: dict[str, Any] | None = None) -> T:
        return await self._repository.update(item, values)

    async def delete(self, item: T, remove: bool = False) -> Any:
        result = await self._repository.delete(item)
        if remove:
            data = await self._settled_data()
            match = data.find(_matches(item, self._repository.id_key))
            if match is not None:
                data.remove(match)
        return result

    async def delete_all(self, remove: bool = False) -> Any:
        result = await self._repository.delete_all(self._options)
        if remove:
            data = await self._settled_data()
            for item in data.snapshot():
                data.remove(item)
        return result

    def sort(self, sort: str | None) -> Collection[T]:
        return self._clone(sort=sort)

    def filter(self, **filters: Any) -> Collection[T]:
        merged = {**self._options.filters, **filters}
        return self._clone(filters={k: v for k, v in merged.items() if v is not None})

    def reverse(self) -> Collection[T]:
        return self._clone(reverse=not self._options.reverse)

    def search(self, search: str | None) -> Collection[T]:
        return self._clone(search=search)

    def _clone(self, **changes: Any):
        return type(self)(self._repository, self._options.replace(**changes), config=self._config)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._options!r})"


class PaginatedCollection(Collection[T]):
    """Paginated view; data is a PagedReactiveList."""

    def __init__(
        self,
        repository: Repository[T],
        options: ListOptions | None = None,
        *,
        config: CacheConfig | None = None,
    ) -> None:
        super().__init__(repository, options, config=config)
        if not self._options.page_size:
            self._options = self._options.replace(page_size=self._config.page_size)

    @property
    def data(self) -> PagedReactiveList[T]:
        if self._data is None:
            options = self._options
            self._data = PagedReactiveList(
                lambda size, index: self._repository.list_items(options, index),
                options.page_size,
                eager=self._config.eager,
            )
        return self._data

    @property
    def page_size(self) -> int:
        return self._options.page_size

    def with_page_size(self, page_size: int) -> PaginatedCollection[T]:
        return self._clone(page_size=page_size)

    def get_item_at_index(self, index: int) -> Any:
        return self.data.get_item_at_index(index)

    def get_next_page(self):
        return self.data.get_next_page()


class EmptyCollection(Collection[T]):
    """A collection that never has anything in it."""

    def __init__(self, options: ListOptions | None = None, *, config: CacheConfig | None = None) -> None:
        super().__init__(EmptyRepository(config=config), options, config=config)

    def _clone(self, **changes: Any):
        return type(self)(self._options.replace(**changes), config=self._config)
