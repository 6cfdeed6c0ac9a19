"""Provider response type and the empty-slot sentinel."""

from __future__ import annotations

from typing import Any, Generic, Iterable, TypeVar

T = TypeVar("T")


class _EmptySlot:
    """Placeholder for a list slot that holds no value yet."""

    __slots__ = ()
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EMPTY"

    def __reduce__(self):
        return (_EmptySlot, ())


EMPTY = _EmptySlot()


class Page(list, Generic[T]):
    """A list of items as returned by a provider.

    metadata and total_length are optional side attributes; None means the
    response did not carry them.
    """

    def __init__(
        self,
        items: Iterable[T] = (),
        *,
        metadata: Any = None,
        total_length: int | None = None,
    ) -> None:
        super().__init__(items)
        self.metadata = metadata
        self.total_length = total_length

    def __repr__(self) -> str:
        return (
            f"Page({list(self)!r}, metadata={self.metadata!r}, "
            f"total_length={self.total_length!r})"
        )


def response_metadata(response: Any) -> tuple[Any, int | None]:
    """Return the (metadata, total_length) a provider response carries.

    Works for Page and for any other sequence with those attributes.
    """
    metadata = getattr(response, "metadata", None)
    total_length = getattr(response, "total_length", None)
    if total_length is not None:
        total_length = int(total_length)
    return metadata, total_length
