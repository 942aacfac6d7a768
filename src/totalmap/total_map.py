"""Maps in which every possible key has a value.

Only entries holding *uncommon* values are stored; every other key is
presumed to hold the *common* value supplied by the map's
:class:`~totalmap.commonality.Commonality`. Collection-style methods
(``len``, ``items``, ``keys``, iteration) therefore see only the uncommon
entries, while :meth:`TotalMap.get` answers for every key.
"""

from __future__ import annotations

import logging
import weakref
from contextlib import contextmanager
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    ClassVar,
    Generic,
    ItemsView,
    Iterable,
    Iterator,
    KeysView,
    Mapping,
    TypeVar,
    ValuesView,
)

from totalmap.commonality import Commonality, ConstantCommonality
from totalmap.entry import _VACANT, Entry
from totalmap.exceptions import EntryBorrowError
from totalmap.invariants import common_keys, require_canonical, strict_mode
from totalmap.store import BackingStore, SortedStore, StoreFlavor, copy_store, make_store

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class TotalMap(Generic[K, V]):
    """A total function ``K -> V`` backed by a sparse store.

    ``commonality`` defaults to ``ConstantCommonality(None)``, which makes the
    map behave like ``dict.get`` that never stores ``None``. ``flavor`` picks
    the backing store (hash or ordered) unless an explicit ``store`` is
    given; a non-empty ``store`` is adopted after its common entries are
    dropped. ``pairs`` are inserted one by one.
    """

    default_flavor: ClassVar[StoreFlavor] = StoreFlavor.HASH

    __slots__ = ("_store", "_commonality", "_borrower")

    def __init__(
        self,
        commonality: Commonality[K, V] | None = None,
        *,
        flavor: StoreFlavor | str | None = None,
        store: BackingStore[K, V] | None = None,
        pairs: Iterable[tuple[K, V]] | Mapping[K, V] = (),
    ) -> None:
        self._commonality: Commonality[K, V] = (
            commonality if commonality is not None else self._default_commonality()
        )
        self._borrower: weakref.ref[Entry[K, V]] | None = None
        if store is None:
            store = make_store(flavor if flavor is not None else self.default_flavor)
        self._store: BackingStore[K, V] = store
        if self._store:
            self._restore_canonical(source=f"{type(self).__name__}.__init__")
        self.extend(pairs)

    @classmethod
    def _default_commonality(cls) -> Commonality[Any, Any]:
        return ConstantCommonality(None)

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[tuple[K, V]] | Mapping[K, V],
        commonality: Commonality[K, V] | None = None,
        *,
        flavor: StoreFlavor | str | None = None,
    ) -> TotalMap[K, V]:
        return cls(commonality, flavor=flavor, pairs=pairs)

    @classmethod
    def _adopt(
        cls,
        commonality: Commonality[K, V],
        store: BackingStore[K, V],
    ) -> TotalMap[K, V]:
        """Wrap ``store`` as-is, without re-checking its entries."""
        this = cls.__new__(cls)
        this._commonality = commonality
        this._borrower = None
        this._store = store
        return this

    @property
    def commonality(self) -> Commonality[K, V]:
        return self._commonality

    @property
    def _raw_store(self) -> BackingStore[K, V]:
        return self._store

    # ------------------------------------------------------------------
    # Element access

    def get(self, key: K) -> V:
        """Return the value for ``key``: stored if uncommon, else the common value."""
        self._check_unborrowed("get")
        value = self._store.get(key, _VACANT)
        if value is _VACANT:
            return self._commonality.common(key)
        return value

    def contains_key(self, key: K) -> bool:
        """Return True if ``key`` holds an uncommon value."""
        self._check_unborrowed("contains_key")
        return key in self._store

    def insert(self, key: K, value: V) -> V | None:
        """Associate ``key`` with ``value``.

        A common value deletes the stored entry instead. Returns the
        previously stored uncommon value, or None if the key was common.
        """
        self._check_unborrowed("insert")
        return self._canonical_write(key, value)

    def remove(self, key: K) -> V | None:
        """Reset ``key`` to its common value, returning the uncommon value it held."""
        self._check_unborrowed("remove")
        previous = self._store.pop(key, _VACANT)
        return None if previous is _VACANT else previous

    def uncommon_entry(self, key: K) -> Entry[K, V]:
        """Return an entry handle for in-place manipulation of ``key``.

        The handle borrows the map until it is released.
        """
        self._check_unborrowed("uncommon_entry")
        entry = Entry(self, key)
        self._borrower = weakref.ref(entry)
        return entry

    def occupied_entry(self, key: K) -> Entry[K, V] | None:
        """Return an entry handle only if ``key`` currently holds an uncommon value."""
        self._check_unborrowed("occupied_entry")
        if key not in self._store:
            return None
        return self.uncommon_entry(key)

    __getitem__ = get
    __contains__ = contains_key

    def __setitem__(self, key: K, value: V) -> None:
        self.insert(key, value)

    def __delitem__(self, key: K) -> None:
        self.remove(key)

    # ------------------------------------------------------------------
    # Collection view of the uncommon entries

    def __len__(self) -> int:
        return len(self._store)

    def is_empty(self) -> bool:
        return not self._store

    def items(self) -> ItemsView[K, V]:
        """Stored (uncommon) pairs, in the backing store's natural order."""
        self._check_unborrowed("items")
        return self._store.items()

    def keys(self) -> KeysView[K]:
        self._check_unborrowed("keys")
        return self._store.keys()

    def values(self) -> ValuesView[V]:
        self._check_unborrowed("values")
        return self._store.values()

    def __iter__(self) -> Iterator[K]:
        self._check_unborrowed("__iter__")
        return iter(self._store)

    def as_store(self) -> Mapping[K, V]:
        """Read-only view of the backing store, i.e. exactly the uncommon entries."""
        self._check_unborrowed("as_store")
        return MappingProxyType(self._store)

    @contextmanager
    def mutable_store(self) -> Iterator[BackingStore[K, V]]:
        """Expose the raw backing store for bulk mutation.

        Entries left holding common values are deleted when the block exits,
        or reported through ``never()`` in strict mode.
        """
        self._check_unborrowed("mutable_store")
        try:
            yield self._store
        except BaseException:
            self.normalize()
            raise
        self._restore_canonical(source="mutable_store")

    # ------------------------------------------------------------------
    # Bulk mutation

    def clear(self) -> None:
        """Reset every key to the common value."""
        self._check_unborrowed("clear")
        self._store.clear()

    def drain(self) -> list[tuple[K, V]]:
        """Reset every key to the common value and return the uncommon pairs."""
        self._check_unborrowed("drain")
        pairs = list(self._store.items())
        self._store.clear()
        return pairs

    def extend(self, pairs: Iterable[tuple[K, V]] | Mapping[K, V]) -> None:
        self._check_unborrowed("extend")
        if isinstance(pairs, Mapping):
            pairs = pairs.items()
        for key, value in pairs:
            self._canonical_write(key, value)

    def retain(self, predicate: Callable[[K, V], bool]) -> int:
        """Keep only the stored entries for which ``predicate(key, value)`` holds.

        Returns the number of entries reset to common.
        """
        self._check_unborrowed("retain")
        doomed = [key for key, value in self._store.items() if not predicate(key, value)]
        for key in doomed:
            del self._store[key]
        return len(doomed)

    def normalize(self) -> int:
        """Delete stored entries whose values have become common.

        Needed only after a stored mutable value was changed in place outside
        an entry handle. Returns the number of entries deleted.
        """
        self._check_unborrowed("normalize")
        stale = common_keys(self._store.items(), self._commonality)
        for key in stale:
            del self._store[key]
        if stale:
            logger.debug(
                "%s.normalize dropped %d common entries", type(self).__name__, len(stale)
            )
        return len(stale)

    def assert_canonical(self) -> None:
        """Fail via ``never()`` if any stored entry holds a common value."""
        require_canonical(
            self._store.items(),
            self._commonality,
            source=f"{type(self).__name__}.assert_canonical",
        )

    def copy(self) -> TotalMap[K, V]:
        self._check_unborrowed("copy")
        return type(self)._adopt(self._commonality, copy_store(self._store))

    __copy__ = copy

    # ------------------------------------------------------------------
    # Comparison and display

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TotalMap):
            return NotImplemented
        if self._commonality != other._commonality:
            return False
        return dict(self._store.items()) == dict(other._store.items())

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        body = "".join(f"{key!r}: {value!r}, " for key, value in self._store.items())
        return f"{type(self).__name__}({{{body}...: {self._commonality!r}}})"

    # ------------------------------------------------------------------
    # Internals shared with Entry

    def _canonical_write(self, key: K, value: V) -> V | None:
        if self._commonality.is_common(key, value):
            previous = self._store.pop(key, _VACANT)
        else:
            previous = self._store.get(key, _VACANT)
            self._store[key] = value
        return None if previous is _VACANT else previous

    def _restore_canonical(self, *, source: str) -> None:
        if strict_mode():
            require_canonical(self._store.items(), self._commonality, source=source)
            return
        stale = common_keys(self._store.items(), self._commonality)
        for key in stale:
            del self._store[key]
        if stale:
            logger.debug("%s dropped %d common entries", source, len(stale))

    def _check_unborrowed(self, operation: str) -> None:
        if self._borrower is None:
            return
        entry = self._borrower()
        if entry is None or entry.released:
            self._borrower = None
            return
        raise EntryBorrowError(
            f"{type(self).__name__}.{operation}() called while the entry for "
            f"{entry.key!r} is still alive"
        )

    def _end_borrow(self, entry: Entry[K, V]) -> None:
        if self._borrower is None:
            return
        current = self._borrower()
        if current is None or current is entry:
            self._borrower = None


class TotalHashMap(TotalMap[K, V]):
    """Total map over a hash store (``dict``); iterates in insertion order."""

    default_flavor: ClassVar[StoreFlavor] = StoreFlavor.HASH
    __slots__ = ()


class TotalOrderedMap(TotalMap[K, V]):
    """Total map over a :class:`~totalmap.store.SortedStore`; iterates in key order."""

    default_flavor: ClassVar[StoreFlavor] = StoreFlavor.ORDERED
    __slots__ = ()


def flavor_of(total_map: TotalMap[Any, Any]) -> StoreFlavor:
    """Flavor of an existing map's backing store; foreign stores count as hash."""
    if isinstance(total_map._raw_store, SortedStore):
        return StoreFlavor.ORDERED
    return StoreFlavor.HASH
