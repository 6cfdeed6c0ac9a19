"""Repositories: where entities come from.

A Repository owns one IdentityCache and routes every entity a fetch
returns through it. Subclasses only implement the transport hooks
(_fetch_list, _fetch_one, _create, _modify, _remove, _remove_all); the
public methods take care of reconciling, forgetting and clearing.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, Sequence, TypeVar

from snarform.config import CacheConfig
from snarform.exceptions import MissingIdError, UnsupportedOperationError
from snarform.identity import IdentityCache, MergePolicy, last_write_wins
from snarform.model import assign_fields, entity_fields, entity_id
from snarform.page import Page, response_metadata
from snarform.paged_list import PagedReactiveList
from snarform.reactive_list import ReactiveList

logger = logging.getLogger("snarform.repository")

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class ListOptions:
    """Query options a collection view passes to its repository.

    Parameters
    ----------
    sort : str or None
        Name of a sort the repository knows about.
    filters : dict
        Filter name -> value.
    reverse : bool
        Reverse the sort order.
    search : str or None
        Free-text search query.
    page_size : int
        Items per page, or 0 for no pagination.
    """

    sort: str | None = None
    filters: dict[str, Any] = dataclasses.field(default_factory=dict)
    reverse: bool = False
    search: str | None = None
    page_size: int = 0

    def replace(self, **changes: Any) -> ListOptions:
        return dataclasses.replace(self, **changes)


class Repository(ABC, Generic[T]):
    """Base class wiring a transport to an IdentityCache."""

    def __init__(
        self,
        cache: IdentityCache | None = None,
        *,
        config: CacheConfig | None = None,
        policy: MergePolicy | str = last_write_wins,
    ) -> None:
        self.config = config or CacheConfig()
        self.cache = cache if cache is not None else IdentityCache(self.config.id_key, policy)

    @property
    def id_key(self) -> str:
        return self.cache.id_key

    # --- transport hooks ---

    @abstractmethod
    async def _fetch_list(self, options: ListOptions, page_index: int | None) -> Sequence[T]: ...

    @abstractmethod
    async def _fetch_one(self, entity_id: Any) -> T | None: ...

    @abstractmethod
    async def _create(self, item: T) -> T | None: ...

    @abstractmethod
    async def _modify(self, item: T, values: dict[str, Any] | None) -> T | None: ...

    @abstractmethod
    async def _remove(self, item: T) -> Any: ...

    @abstractmethod
    async def _remove_all(self, options: ListOptions) -> Any: ...

    # --- public API ---

    def _adopt(self, item: Any) -> Any:
        orm = getattr(item, "orm", None)
        if orm is not None and orm.repository is None:
            orm.repository = self
        return self.cache.reconcile(item)

    async def list_items(self, options: ListOptions | None = None, page_index: int | None = None) -> Page[T]:
        """Fetch a list (or one page of it) of canonical instances."""
        result = await self._fetch_list(options or ListOptions(), page_index)
        metadata, total_length = response_metadata(result)
        page = result if isinstance(result, Page) else Page(result, metadata=metadata, total_length=total_length)
        for index, item in enumerate(page):
            page[index] = self._adopt(item)
        logger.debug("Fetched %d items (page %s, %r)", len(page), page_index, options)
        return page

    def get_by_id(self, key: Any, reload: bool = False) -> asyncio.Future:
        """Fetch one entity, coalescing with any fetch already running for key."""
        if key is None or key == "":
            raise MissingIdError("get_by_id called without an id", id_key=self.id_key)
        return self.cache.fetch(key, self._load_one, reload=reload)

    async def _load_one(self, key: Any) -> T | None:
        item = await self._fetch_one(key)
        if item is None:
            return None
        orm = getattr(item, "orm", None)
        if orm is not None and orm.repository is None:
            orm.repository = self
        return item

    async def add(self, item: T) -> T:
        """Create item. An item created without an id becomes the canonical instance."""
        result = await self._create(item)
        if result is not None and result is not item and entity_id(item, self.id_key) is None:
            assign_fields(item, entity_fields(result))
            result = item
        return self._adopt(result if result is not None else item)

    async def update(self, item: T, values: dict[str, Any] | None = None) -> T:
        if entity_id(item, self.id_key) is None:
            raise MissingIdError(f"update requires {self.id_key!r} to be set", id_key=self.id_key)
        result = await self._modify(item, values)
        return self._adopt(result if result is not None else item)

    async def delete(self, item: T) -> Any:
        result = await self._remove(item)
        self.cache.forget(item)
        return result

    async def delete_all(self, options: ListOptions | None = None) -> Any:
        result = await self._remove_all(options or ListOptions())
        self.cache.clear()
        return result

    def reload(self, item: T) -> asyncio.Future:
        """Refresh item in place from the source."""
        key = entity_id(item, self.id_key)
        if key is None:
            raise MissingIdError(f"reload requires {self.id_key!r} to be set", id_key=self.id_key)
        if self.cache.lookup(key) is None:
            # Make the fetched data land on this very instance.
            self._adopt(item)
        return self.get_by_id(key, reload=True)

    def list_observable(self, options: ListOptions | None = None, *, eager: bool | None = None) -> ReactiveList[T]:
        return ReactiveList(
            lambda: self.list_items(options),
            eager=self.config.eager if eager is None else eager,
        )

    def paged_list_observable(
        self,
        options: ListOptions | None = None,
        page_size: int | None = None,
        *,
        eager: bool | None = None,
    ) -> PagedReactiveList[T]:
        options = options or ListOptions()
        page_size = page_size or options.page_size or self.config.page_size
        options = options.replace(page_size=page_size)
        return PagedReactiveList(
            lambda size, index: self.list_items(options, index),
            page_size,
            eager=self.config.eager if eager is None else eager,
        )


class EmptyRepository(Repository[T]):
    """A repository with nothing in it that refuses writes."""

    async def _fetch_list(self, options: ListOptions, page_index: int | None) -> Sequence[T]:
        return Page(total_length=0)

    async def _fetch_one(self, entity_id: Any) -> T | None:
        return None

    async def _create(self, item: T) -> T | None:
        raise UnsupportedOperationError("Can't add items to EmptyRepository")

    async def _modify(self, item: T, values: dict[str, Any] | None) -> T | None:
        raise UnsupportedOperationError("Can't update items in EmptyRepository")

    async def _remove(self, item: T) -> Any:
        return None

    async def _remove_all(self, options: ListOptions) -> Any:
        return None
