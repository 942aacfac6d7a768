"""Entry handles: scoped, canonicalizing mutation of a single key."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from totalmap.exceptions import EntryReleasedError

if TYPE_CHECKING:
    from totalmap.total_map import TotalMap

K = TypeVar("K")
V = TypeVar("V")

_VACANT: Any = object()


class Entry(Generic[K, V]):
    """A view of one key of a :class:`~totalmap.total_map.TotalMap`.

    The handle is *Occupied* while the key holds an uncommon value in the
    backing store and *Vacant* while it is presumed common. Every
    state-changing call re-tests the current value with the map's commonality
    and writes or deletes the stored entry accordingly; releasing the handle
    applies the same rule once more, which picks up in-place mutation of a
    mutable value obtained from :meth:`get`.

    While the handle is alive its map refuses every other operation. Use it
    as a context manager, or call :meth:`release`::

        with counts.uncommon_entry("apples") as entry:
            entry.set(entry.get() + 1)
    """

    __slots__ = ("_owner", "_key", "_value", "_released", "__weakref__")

    def __init__(self, owner: TotalMap[K, V], key: K) -> None:
        self._owner = owner
        self._key = key
        stored = owner._raw_store.get(key, _VACANT)
        self._value: V = owner.commonality.common(key) if stored is _VACANT else stored
        self._released = False

    @property
    def key(self) -> K:
        return self._key

    @property
    def released(self) -> bool:
        return self._released

    @property
    def is_occupied(self) -> bool:
        self._check_live("is_occupied")
        return self._key in self._owner._raw_store

    @property
    def is_vacant(self) -> bool:
        return not self.is_occupied

    def get(self) -> V:
        """Return the current value: the stored one, or the common one."""
        self._check_live("get")
        return self._value

    def set(self, value: V) -> None:
        self._check_live("set")
        self._value = value
        self._apply()

    value = property(get, set)

    def update(self, function: Callable[[V], V]) -> V:
        """Replace the value with ``function(current)`` and return the new value."""
        self._check_live("update")
        self.set(function(self._value))
        return self._value

    def remove(self) -> V | None:
        """Force the key back to its common value.

        Returns the previously stored uncommon value, or None if the key was
        already vacant.
        """
        self._check_live("remove")
        previous = self._owner._raw_store.pop(self._key, _VACANT)
        self._value = self._owner.commonality.common(self._key)
        return None if previous is _VACANT else previous

    def release(self) -> None:
        """Canonicalize the key one last time and give the map back."""
        if self._released:
            return
        try:
            self._apply()
        finally:
            self._released = True
            self._owner._end_borrow(self)

    def __enter__(self) -> Entry[K, V]:
        self._check_live("__enter__")
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()

    def __del__(self) -> None:
        if not getattr(self, "_released", True):
            self.release()

    def __repr__(self) -> str:
        if self._released:
            return f"Entry({self._key!r}, <released>)"
        state = "occupied" if self._key in self._owner._raw_store else "vacant"
        return f"Entry({self._key!r}, {self._value!r}, {state})"

    def _apply(self) -> None:
        self._owner._canonical_write(self._key, self._value)

    def _check_live(self, operation: str) -> None:
        if self._released:
            raise EntryReleasedError(
                f"Entry.{operation}() called after the entry for {self._key!r} was released"
            )

