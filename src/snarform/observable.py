"""Observable state: values, lists and dicts that track their readers.

Reading inside a reaction registers the reaction as an observer. Writing
notifies observers, but only when something actually changed, so no-op
writes never wake anything up.
"""

from __future__ import annotations

from typing import Any, Generic, Iterable, Iterator, TypeVar

from snarform._tracking import notify, track

T = TypeVar("T")
KT = TypeVar("KT")
VT = TypeVar("VT")


def _changed(old: Any, new: Any) -> bool:
    return old is not new and old != new


class Observable(Generic[T]):
    """A single observable value."""

    __slots__ = ("_value", "_observers")

    def __init__(self, value: T) -> None:
        self._value = value
        self._observers: set = set()

    def get(self) -> T:
        track(self, self._observers)
        return self._value

    def peek(self) -> T:
        """Read without registering a dependency."""
        return self._value

    def set(self, value: T) -> None:
        if _changed(self._value, value):
            self._value = value
            notify(self._observers)

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    def __repr__(self) -> str:
        return f"Observable({self._value!r})"


class ObservableList(Generic[T]):
    """A list whose reads track and whose mutations notify once per call."""

    __slots__ = ("_items", "_observers")

    def __init__(self, items: Iterable[T] | None = None) -> None:
        self._items: list[T] = list(items) if items is not None else []
        self._observers: set = set()

    def _track(self) -> None:
        track(self, self._observers)

    def _notify(self) -> None:
        notify(self._observers)

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    # --- reads ---

    def __getitem__(self, index):
        self._track()
        return self._items[index]

    def __len__(self) -> int:
        self._track()
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        self._track()
        return iter(list(self._items))

    def __contains__(self, item: object) -> bool:
        self._track()
        return item in self._items

    def __bool__(self) -> bool:
        self._track()
        return bool(self._items)

    def snapshot(self) -> list[T]:
        self._track()
        return list(self._items)

    def peek(self) -> list[T]:
        """The live backing list, without tracking. Do not mutate it."""
        return self._items

    # --- writes ---

    def append(self, item: T) -> None:
        self._items.append(item)
        self._notify()

    def __setitem__(self, index: int, value: T) -> None:
        if _changed(self._items[index], value):
            self._items[index] = value
            self._notify()

    def __delitem__(self, index: int) -> None:
        del self._items[index]
        self._notify()

    def remove(self, item: T) -> None:
        self._items.remove(item)
        self._notify()

    def replace(self, items: Iterable[T]) -> None:
        """Swap the whole contents in one notification."""
        new_items = list(items)
        if len(new_items) == len(self._items) and all(
            a is b for a, b in zip(new_items, self._items)
        ):
            return
        self._items[:] = new_items
        self._notify()

    def set_many(self, start: int, values: Iterable[T], fill: Any = None) -> None:
        """Write values from start onward, growing with fill if needed."""
        values = list(values)
        end = start + len(values)
        if end > len(self._items):
            self._items.extend([fill] * (end - len(self._items)))
        self._items[start:end] = values
        if values:
            self._notify()

    def truncate(self, length: int) -> None:
        if length < len(self._items):
            del self._items[length:]
            self._notify()

    def clear(self) -> None:
        if self._items:
            self._items.clear()
            self._notify()

    def __repr__(self) -> str:
        return f"ObservableList({self._items!r})"


class ObservableDict(Generic[KT, VT]):
    """A dict that notifies only when a write changes a value."""

    __slots__ = ("_data", "_observers")

    def __init__(self, data: dict[KT, VT] | None = None) -> None:
        self._data: dict[KT, VT] = dict(data) if data else {}
        self._observers: set = set()

    def _track(self) -> None:
        track(self, self._observers)

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    def __getitem__(self, key: KT) -> VT:
        self._track()
        return self._data[key]

    def get(self, key: KT, default: VT | None = None) -> VT | None:
        self._track()
        return self._data.get(key, default)

    def __contains__(self, key: object) -> bool:
        self._track()
        return key in self._data

    def __len__(self) -> int:
        self._track()
        return len(self._data)

    def __iter__(self) -> Iterator[KT]:
        self._track()
        return iter(list(self._data))

    def items(self):
        self._track()
        return list(self._data.items())

    def to_dict(self) -> dict[KT, VT]:
        self._track()
        return dict(self._data)

    def peek_items(self) -> list[tuple[KT, VT]]:
        return list(self._data.items())

    def __setitem__(self, key: KT, value: VT) -> None:
        if key not in self._data or _changed(self._data[key], value):
            self._data[key] = value
            notify(self._observers)

    def __delitem__(self, key: KT) -> None:
        del self._data[key]
        notify(self._observers)

    def update(self, other: dict[KT, VT]) -> None:
        changed = False
        for key, value in other.items():
            if key not in self._data or _changed(self._data[key], value):
                self._data[key] = value
                changed = True
        if changed:
            notify(self._observers)

    def __repr__(self) -> str:
        return f"ObservableDict({self._data!r})"
