"""Commonality policies: which value every absent key is presumed to hold.

A policy answers two questions for a total map:

- ``common(key)``: the value presumed for a key that is not stored.
- ``is_common(key, value)``: whether ``value`` should be treated as that
  presumed value, and therefore left out of storage.

Both must be pure and defined for every key of the domain, and a policy must
agree with itself: ``is_common(k, common(k))`` holds for every ``k``. If
``==`` is meaningful for the value type, ``is_common`` should be consistent
with it. None of this is checked at runtime; a policy that breaks these rules
leaves the owning map in an unspecified state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Protocol, TypeVar, runtime_checkable

K = TypeVar("K")
V = TypeVar("V")
K_contra = TypeVar("K_contra", contravariant=True)


@runtime_checkable
class Commonality(Protocol[K_contra, V]):
    def common(self, key: K_contra) -> V:
        """Return the value presumed for ``key`` when it is not stored."""

    def is_common(self, key: K_contra, value: V) -> bool:
        """Return True if ``value`` is the common value for ``key``."""


@dataclass(frozen=True)
class DefaultCommonality(Generic[V]):
    """Common value produced by a zero-argument factory, like ``defaultdict``.

    ``DefaultCommonality(int)`` presumes ``0``; ``DefaultCommonality(str)``
    presumes ``""``. Values are compared with ``==`` against a fresh factory
    result.
    """

    default_factory: Callable[[], V]

    def common(self, key: object) -> V:
        return self.default_factory()

    def is_common(self, key: object, value: V) -> bool:
        return bool(value == self.default_factory())


@dataclass(frozen=True)
class ConstantCommonality(Generic[V]):
    """One fixed common value for every key."""

    value: V

    def common(self, key: object) -> V:
        return self.value

    def is_common(self, key: object, value: V) -> bool:
        return value is self.value or bool(value == self.value)


@dataclass(frozen=True)
class KeyedCommonality(Generic[K, V]):
    """Common value computed from the key itself.

    ``function`` must be deterministic; ``is_common(k, v)`` is
    ``v == function(k)``.
    """

    function: Callable[[K], V]

    def common(self, key: K) -> V:
        return self.function(key)

    def is_common(self, key: K, value: V) -> bool:
        return bool(value == self.function(key))
