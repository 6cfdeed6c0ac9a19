"""Exception hierarchy for snarform.

Provider and transport errors are never wrapped in these; the lists store
them in their error field and re-raise them from the handle unchanged.
"""

from __future__ import annotations


class SnarformError(Exception):
    """Base exception for all snarform errors."""


class ConfigError(SnarformError):
    """Invalid configuration value."""


class RepositoryError(SnarformError):
    """A repository operation could not be carried out."""


class MissingIdError(RepositoryError):
    """The operation needs an entity id and none was set."""

    def __init__(self, message: str, *, id_key: str = "id") -> None:
        self.id_key = id_key
        super().__init__(message)


class EntityNotFoundError(RepositoryError):
    """No entity with the given id exists in the repository."""

    def __init__(self, entity_id: object) -> None:
        self.entity_id = entity_id
        super().__init__(f"No entity with id {entity_id!r}")


class UnsupportedOperationError(RepositoryError):
    """The repository does not support this operation."""


class QueryError(RepositoryError):
    """Unknown filter/sort name or unsupported search."""
