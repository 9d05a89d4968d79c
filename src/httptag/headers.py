"""Ordered, case-insensitive mapping of HTTP header names to values."""

from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from typing import Optional, Union

__all__ = ("Headers",)


HeadersInit = Union[Mapping[str, str], Iterable[tuple[str, str]], None]


class Headers(MutableMapping[str, str]):
    """Mapping of HTTP header names to their values.

    Header names are converted to lowercase before they are stored or looked
    up, so ``headers["Content-Type"]`` and ``headers["content-type"]`` refer
    to the same entry. Iteration yields the lowercase names in the order in
    which they were first inserted.
    """

    _items: dict[str, str]

    def __init__(self, items: HeadersInit = None):
        """Constructor.

        Parameters:
            items: optional mapping or sequence of name-value pairs to
                initialize the headers from. Later entries override earlier
                ones with the same name.
        """
        self._items = {}
        if items is not None:
            self.update(items)

    @staticmethod
    def normalize(name: str) -> str:
        """Returns the normalized form of the given header name."""
        return name.strip().lower()

    def __getitem__(self, name: str) -> str:
        return self._items[self.normalize(name)]

    def __setitem__(self, name: str, value: str) -> None:
        self._items[self.normalize(name)] = value

    def __delitem__(self, name: str) -> None:
        del self._items[self.normalize(name)]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.normalize(name) in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._items == other._items
        if isinstance(other, Mapping):
            return self._items == Headers(other)._items
        return NotImplemented

    def __repr__(self) -> str:
        return "{0}({1!r})".format(self.__class__.__name__, self._items)

    def add(self, name: str, value: str) -> None:
        """Adds a header value, joining it with the existing value using a
        comma if the header is already present.
        """
        key = self.normalize(name)
        existing: Optional[str] = self._items.get(key)
        self._items[key] = value if existing is None else existing + ", " + value

    def copy(self) -> "Headers":
        """Returns a shallow copy of the headers."""
        return self.__class__(self._items)
