"""Backing stores: the finite key-value containers that hold uncommon entries.

A total map needs only the capability set named by :class:`BackingStore`, so
any ``MutableMapping`` will do. Two flavors ship with the package:

- ``StoreFlavor.HASH``: a plain ``dict``, iterating in insertion order.
- ``StoreFlavor.ORDERED``: a :class:`SortedStore`, iterating in key order.
"""

from __future__ import annotations

from bisect import bisect_left
from enum import Enum
from typing import (
    Any,
    Iterable,
    Iterator,
    MutableMapping,
    Protocol,
    TypeVar,
    runtime_checkable,
)

from totalmap.invariants import never

K = TypeVar("K")
V = TypeVar("V")


@runtime_checkable
class BackingStore(Protocol[K, V]):
    """Minimal capability set a total map relies on."""

    def __getitem__(self, key: K) -> V: ...

    def __setitem__(self, key: K, value: V) -> None: ...

    def __delitem__(self, key: K) -> None: ...

    def __contains__(self, key: object) -> bool: ...

    def __iter__(self) -> Iterator[K]: ...

    def __len__(self) -> int: ...

    def get(self, key: K, default: Any = None) -> Any: ...

    def pop(self, key: K, default: Any = ...) -> Any: ...

    def items(self) -> Any: ...

    def keys(self) -> Any: ...

    def values(self) -> Any: ...

    def clear(self) -> None: ...


class StoreFlavor(str, Enum):
    HASH = "hash"
    ORDERED = "ordered"


class SortedStore(MutableMapping[K, V]):
    """Mapping that iterates in ascending key order.

    Keys are kept in a sorted list located with ``bisect`` and values live in
    a ``dict``, so membership and lookup are O(1) and inserting a new key is
    O(n) in the worst case. Keys must be mutually comparable and hashable.
    """

    __slots__ = ("_keys", "_values")

    def __init__(self, pairs: Iterable[tuple[K, V]] = ()) -> None:
        self._keys: list[K] = []
        self._values: dict[K, V] = {}
        for key, value in pairs:
            self[key] = value

    def __getitem__(self, key: K) -> V:
        return self._values[key]

    def __setitem__(self, key: K, value: V) -> None:
        if key not in self._values:
            self._keys.insert(bisect_left(self._keys, key), key)
        self._values[key] = value

    def __delitem__(self, key: K) -> None:
        if key not in self._values:
            raise KeyError(key)
        index = self._index_of(key)
        del self._keys[index]
        del self._values[key]

    def _index_of(self, key: K) -> int:
        index = bisect_left(self._keys, key)
        if index < len(self._keys) and self._keys[index] == key:
            return index
        # keys that do not order against themselves, such as nan
        for index, candidate in enumerate(self._keys):
            if candidate is key or candidate == key:
                return index
        never("sorted key index out of sync", key=repr(key))

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[K]:
        return iter(self._keys)

    def __reversed__(self) -> Iterator[K]:
        return reversed(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def clear(self) -> None:
        self._keys.clear()
        self._values.clear()

    def first_key(self) -> K:
        if not self._keys:
            raise KeyError("first_key(): store is empty")
        return self._keys[0]

    def last_key(self) -> K:
        if not self._keys:
            raise KeyError("last_key(): store is empty")
        return self._keys[-1]

    def copy(self) -> SortedStore[K, V]:
        clone: SortedStore[K, V] = SortedStore()
        clone._keys = list(self._keys)
        clone._values = dict(self._values)
        return clone

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SortedStore):
            return self._values == other._values
        return super().__eq__(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        body = ", ".join(f"{key!r}: {self._values[key]!r}" for key in self._keys)
        return f"SortedStore({{{body}}})"


def normalize_flavor(flavor: StoreFlavor | str) -> StoreFlavor:
    if isinstance(flavor, StoreFlavor):
        return flavor
    normalized = str(flavor).strip().lower()
    for candidate in StoreFlavor:
        if candidate.value == normalized:
            return candidate
    never(
        "unknown store flavor",
        flavor=flavor,
        allowed=[candidate.value for candidate in StoreFlavor],
    )


def make_store(flavor: StoreFlavor | str = StoreFlavor.HASH) -> BackingStore[Any, Any]:
    match normalize_flavor(flavor):
        case StoreFlavor.ORDERED:
            return SortedStore()
        case _:
            return {}


def copy_store(store: BackingStore[K, V]) -> BackingStore[K, V]:
    copier = getattr(store, "copy", None)
    if callable(copier):
        return copier()
    clone = type(store)()
    for key, value in store.items():
        clone[key] = value
    return clone
