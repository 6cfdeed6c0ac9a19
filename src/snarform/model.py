"""Entities.

Any record with an id can flow through the cache: a Model, a plain dict,
or a plain object with attributes. Model is the reactive one: its fields
live in an ObservableDict, so a merge into the canonical instance re-runs
every reaction that read the merged fields.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from snarform.action import transaction
from snarform.exceptions import MissingIdError, RepositoryError
from snarform.observable import Observable, ObservableDict

if TYPE_CHECKING:
    from snarform.repository import Repository


class OrmState:
    """Per-entity bookkeeping the repository layer maintains."""

    __slots__ = ("_is_loading", "_is_reloading", "_is_saving", "loading_task", "repository")

    def __init__(self) -> None:
        self._is_loading = Observable(False)
        self._is_reloading = Observable(False)
        self._is_saving = Observable(False)
        self.loading_task: asyncio.Future | None = None
        self.repository: Repository | None = None

    @property
    def is_loading(self) -> bool:
        return self._is_loading.get()

    @is_loading.setter
    def is_loading(self, value: bool) -> None:
        self._is_loading.set(value)

    @property
    def is_reloading(self) -> bool:
        return self._is_reloading.get()

    @is_reloading.setter
    def is_reloading(self, value: bool) -> None:
        self._is_reloading.set(value)

    @property
    def is_saving(self) -> bool:
        return self._is_saving.get()

    @is_saving.setter
    def is_saving(self, value: bool) -> None:
        self._is_saving.set(value)


class Model:
    """Base class for entities with observable fields.

    Fields are passed as keyword arguments and read/written as attributes.
    Names starting with an underscore are ordinary instance attributes and
    are not fields.

    Usage:
        class Todo(Model):
            pass

        todo = Todo(id="1", title="Write docs")
        autorun(lambda: print(todo.title))
        todo.title = "Write more docs"  # prints again
    """

    id_key = "id"

    def __init__(self, **fields: Any) -> None:
        object.__setattr__(self, "_fields", ObservableDict(fields))
        object.__setattr__(self, "orm", OrmState())

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails.
        if name.startswith("_"):
            raise AttributeError(name)
        fields = object.__getattribute__(self, "_fields")
        if name in fields:
            return fields[name]
        if name == self.id_key:
            return None
        raise AttributeError(f"{type(self).__name__!r} has no field {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or name == "orm" or isinstance(
            getattr(type(self), name, None), property
        ):
            object.__setattr__(self, name, value)
        else:
            self._fields[name] = value

    def fields(self) -> dict[str, Any]:
        return self._fields.to_dict()

    def update_fields(self, values: dict[str, Any]) -> None:
        """Assign several fields with a single notification."""
        self._fields.update(values)

    @property
    def is_fully_loaded(self) -> bool:
        """False for summary records that a get_by_id should refresh."""
        return True

    def _repository(self, operation: str, repository: Repository | None) -> Repository:
        repository = repository or self.orm.repository
        if repository is None:
            raise RepositoryError(f"Model {operation!r} called without repository")
        return repository

    async def save(self, repository: Repository | None = None) -> Any:
        """Add or update this entity, depending on whether it has an id."""
        repository = self._repository("save", repository)
        if entity_id(self, repository.id_key) is None:
            return await repository.add(self)
        return await repository.update(self)

    async def update(self, values: dict[str, Any] | None = None, repository: Repository | None = None) -> Any:
        repository = self._repository("update", repository)
        if entity_id(self, repository.id_key) is None:
            raise MissingIdError(
                f"Model 'update' requires {repository.id_key!r} to be set",
                id_key=repository.id_key,
            )
        return await repository.update(self, values)

    async def reload(self, repository: Repository | None = None) -> Any:
        repository = self._repository("reload", repository)
        return await repository.reload(self)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self._fields.peek_items())
        return f"{type(self).__name__}({fields})"


# --- shape-agnostic field access ---


def entity_id(entity: Any, id_key: str = "id") -> Any:
    """The entity's id, or None. Empty strings count as no id."""
    if entity is None:
        return None
    if isinstance(entity, dict):
        value = entity.get(id_key)
    else:
        value = getattr(entity, id_key, None)
    return None if value == "" else value


def entity_fields(entity: Any) -> dict[str, Any]:
    """A shallow snapshot of the entity's fields."""
    if isinstance(entity, Model):
        return entity.fields()
    if isinstance(entity, dict):
        return dict(entity)
    return {k: v for k, v in vars(entity).items() if not k.startswith("_")}


def field_value(entity: Any, name: str, default: Any = None) -> Any:
    if isinstance(entity, dict):
        return entity.get(name, default)
    return getattr(entity, name, default)


def assign_fields(entity: Any, values: dict[str, Any]) -> None:
    """Write values into entity in place."""
    if not values:
        return
    if isinstance(entity, Model):
        entity.update_fields(values)
    elif isinstance(entity, dict):
        entity.update(values)
    else:
        with transaction():
            for key, value in values.items():
                setattr(entity, key, value)


def copy_entity(entity: Any) -> Any:
    """A detached shallow copy of the same shape."""
    if isinstance(entity, Model):
        return type(entity)(**entity.fields())
    if isinstance(entity, dict):
        return dict(entity)
    clone = object.__new__(type(entity))
    clone.__dict__.update(vars(entity))
    return clone
