"""ListState: the reactive side-record every list carries.

Lists are composed of an ObservableList (the slots) and one of these. The
list class exposes both through one handle; consumers read fields such as
``lst.is_loading`` and never touch the record directly.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from snarform.observable import Observable

UNKNOWN_LENGTH = -1


class ListState:
    """Observable loading/error/metadata fields of a list."""

    __slots__ = (
        "is_loading",
        "is_reloading",
        "error",
        "metadata",
        "total_length",
        "is_fully_loaded",
        "loaded_at",
        "fully_loaded_at",
    )

    def __init__(self, *, is_loading: bool = False) -> None:
        self.is_loading: Observable[bool] = Observable(is_loading)
        self.is_reloading: Observable[bool] = Observable(False)
        self.error: Observable[BaseException | None] = Observable(None)
        self.metadata: Observable[Any] = Observable(None)
        self.total_length: Observable[int] = Observable(UNKNOWN_LENGTH)
        self.is_fully_loaded: Observable[bool] = Observable(False)
        self.loaded_at: Observable[datetime | None] = Observable(None)
        self.fully_loaded_at: Observable[datetime | None] = Observable(None)

    def as_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name).get() for name in self.__slots__}

    def __repr__(self) -> str:
        fields = ", ".join(f"{name}={getattr(self, name).peek()!r}" for name in self.__slots__)
        return f"ListState({fields})"


class StateFields:
    """Mixin exposing ListState fields as read-only tracked properties."""

    _state: ListState

    @property
    def state(self) -> ListState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading.get()

    @property
    def is_reloading(self) -> bool:
        return self._state.is_reloading.get()

    @property
    def error(self) -> BaseException | None:
        return self._state.error.get()

    @property
    def metadata(self) -> Any:
        return self._state.metadata.get()

    @property
    def total_length(self) -> int:
        return self._state.total_length.get()

    @property
    def is_fully_loaded(self) -> bool:
        return self._state.is_fully_loaded.get()

    @property
    def loaded_at(self) -> datetime | None:
        return self._state.loaded_at.get()

    @property
    def fully_loaded_at(self) -> datetime | None:
        return self._state.fully_loaded_at.get()
