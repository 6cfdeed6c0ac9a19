"""IdentityCache: one canonical instance per entity id.

Every entity coming out of a fetch is passed through reconcile(). The first
instance seen for an id becomes canonical; later ones are merged into it
field by field and discarded, so every list and every holder of the entity
keeps pointing at the same object and sees the update.

The cache is an ordinary object owned by whoever constructs it (usually a
Repository). There is no module-level registry.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Hashable
from typing import Any, Awaitable, Callable, Iterator, MutableSequence, TypeVar, Union

from snarform._versioning import resolved, spawn
from snarform.action import transaction
from snarform.model import assign_fields, entity_fields, entity_id

logger = logging.getLogger("snarform.identity")

E = TypeVar("E")

MergePolicy = Callable[[dict[str, Any], dict[str, Any]], dict[str, Any]]
Loader = Callable[[Any], Union[Awaitable[Any], Any]]


def last_write_wins(current: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    """Every incoming field overwrites the canonical one."""
    return dict(incoming)


def fill_missing(current: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    """Only fields the canonical instance does not have yet."""
    return {k: v for k, v in incoming.items() if k not in current}


def _is_empty(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, (list, dict, tuple, set)) and not value


def skip_empty(current: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    """Incoming fields overwrite unless they are None, "" or an empty container.

    Useful when summary endpoints omit fields a detail endpoint filled in.
    """
    return {k: v for k, v in incoming.items() if not _is_empty(v)}


POLICIES: dict[str, MergePolicy] = {
    "last_write_wins": last_write_wins,
    "fill_missing": fill_missing,
    "skip_empty": skip_empty,
}


def resolve_policy(policy: MergePolicy | str) -> MergePolicy:
    if callable(policy):
        return policy
    try:
        return POLICIES[policy]
    except KeyError:
        raise ValueError(f"Unknown merge policy {policy!r}") from None


def _set_loading(entity: Any, task: asyncio.Future | None, reload: bool) -> None:
    orm = getattr(entity, "orm", None)
    if orm is None:
        return
    with transaction():
        orm.loading_task = task
        orm.is_loading = task is not None
        orm.is_reloading = task is not None and reload


class IdentityCache:
    """Map of id -> canonical entity for one entity type."""

    def __init__(self, id_key: str = "id", policy: MergePolicy | str = last_write_wins) -> None:
        self.id_key = id_key
        self.policy = resolve_policy(policy)
        self._entities: dict[Hashable, Any] = {}
        self._in_flight: dict[Hashable, asyncio.Future] = {}

    def reconcile(self, candidate: E, policy: MergePolicy | str | None = None) -> E:
        """Return the canonical instance for candidate's id.

        Unknown ids register candidate itself. Known ids merge candidate's
        fields into the existing instance, which is returned. Candidates
        without an id (and None) pass through uncached.
        """
        key = entity_id(candidate, self.id_key)
        if key is None:
            return candidate
        canonical = self._entities.get(key)
        if canonical is None:
            self._entities[key] = candidate
            return candidate
        if canonical is not candidate:
            merge = self.policy if policy is None else resolve_policy(policy)
            assign_fields(canonical, merge(entity_fields(canonical), entity_fields(candidate)))
        return canonical

    def reconcile_all(self, items: MutableSequence[E], policy: MergePolicy | str | None = None) -> MutableSequence[E]:
        """Reconcile every element in place; returns the same container."""
        with transaction():
            for index, item in enumerate(items):
                items[index] = self.reconcile(item, policy)
        return items

    def forget(self, id_or_entity: Any) -> None:
        key = entity_id(id_or_entity, self.id_key)
        if key is None and isinstance(id_or_entity, Hashable):
            key = id_or_entity
        if key is not None and self._entities.pop(key, None) is not None:
            logger.debug("Forgot %r", key)

    def clear(self) -> None:
        logger.debug("Clearing %d cached entities", len(self._entities))
        self._entities.clear()

    def lookup(self, key: Hashable) -> Any:
        return self._entities.get(key)

    def is_fetching(self, key: Hashable) -> bool:
        return key in self._in_flight

    def fetch(self, key: Hashable, loader: Loader, *, reload: bool = False) -> asyncio.Future:
        """Fetch one entity by id, coalescing concurrent requests.

        - A fetch already in flight for key: its handle is returned.
        - Cached, fully loaded and not reload: resolves to the cached
          instance without calling loader.
        - Cached but partial and not reload: resolves to the cached instance
          right away while a refresh runs in the background.
        - Otherwise: the handle of a new loader(key) call, whose result is
          reconciled before it resolves.
        """
        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug("Coalescing fetch for %r", key)
            return pending
        cached = self._entities.get(key)
        if cached is not None and not reload and getattr(cached, "is_fully_loaded", True):
            return resolved(cached)

        task = spawn(self._load(key, loader, reload))
        self._in_flight[key] = task
        if cached is not None:
            _set_loading(cached, task, reload)
            if not reload:
                return resolved(cached)
        return task

    async def _load(self, key: Hashable, loader: Loader, reload: bool) -> Any:
        try:
            result = loader(key)
            if inspect.isawaitable(result):
                result = await result
            return self.reconcile(result) if result is not None else None
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]
            canonical = self._entities.get(key)
            if canonical is not None:
                _set_loading(canonical, None, reload)

    def __contains__(self, key: object) -> bool:
        return key in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._entities.values()))

    def __repr__(self) -> str:
        return f"IdentityCache(id_key={self.id_key!r}, size={len(self._entities)})"
