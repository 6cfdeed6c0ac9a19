"""SnarfORM: reactive, identity-reconciled caches for paginated collections."""

from importlib.metadata import version as _version

__version__ = _version("snarform")

from snarform._tracking import get_pending_count, untracked
from snarform.observable import Observable, ObservableList, ObservableDict
from snarform.reaction import Reaction, autorun, reaction
from snarform.action import action, transaction
from snarform.config import CacheConfig
from snarform.exceptions import (
    ConfigError,
    EntityNotFoundError,
    MissingIdError,
    QueryError,
    RepositoryError,
    SnarformError,
    UnsupportedOperationError,
)
from snarform.page import EMPTY, Page
from snarform.state import ListState
from snarform.model import Model
from snarform.identity import IdentityCache, fill_missing, last_write_wins, skip_empty
from snarform.reactive_list import ReactiveList
from snarform.paged_list import PagedReactiveList
from snarform.repository import EmptyRepository, ListOptions, Repository
from snarform.memory import MemoryRepository
from snarform.collection import Collection, EmptyCollection, PaginatedCollection
# textual is not auto-imported; opt in with `from snarform import textual`

__all__ = [
    "Observable",
    "ObservableList",
    "ObservableDict",
    "Reaction",
    "autorun",
    "reaction",
    "action",
    "transaction",
    "untracked",
    "get_pending_count",
    "CacheConfig",
    "SnarformError",
    "ConfigError",
    "RepositoryError",
    "MissingIdError",
    "EntityNotFoundError",
    "UnsupportedOperationError",
    "QueryError",
    "EMPTY",
    "Page",
    "ListState",
    "Model",
    "IdentityCache",
    "last_write_wins",
    "fill_missing",
    "skip_empty",
    "ReactiveList",
    "PagedReactiveList",
    "Repository",
    "EmptyRepository",
    "ListOptions",
    "MemoryRepository",
    "Collection",
    "PaginatedCollection",
    "EmptyCollection",
]
