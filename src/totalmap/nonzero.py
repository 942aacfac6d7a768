"""Maps that only store entries with nonzero values.

Prefer these over a ``DefaultCommonality(int)`` map whenever it matters that
the common value is zero: ``ZeroCommonality`` compares against zero with
``==``, so ``0``, ``0.0``, ``-0.0``, ``Fraction(0)`` and ``Decimal(0)`` are all
common and a single map can mix numeric types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from totalmap.commonality import Commonality
from totalmap.total_map import TotalHashMap, TotalOrderedMap

K = TypeVar("K")
N = TypeVar("N")


@dataclass(frozen=True)
class ZeroCommonality(Generic[N]):
    """Commonality whose common value is the numeric zero ``zero``.

    ``nan`` never equals zero, so it is stored like any other uncommon value.
    """

    zero: N = 0  # type: ignore[assignment]

    def common(self, key: object) -> N:
        return self.zero

    def is_common(self, key: object, value: N) -> bool:
        return bool(value == self.zero)


class NonZeroHashMap(TotalHashMap[K, N]):
    """Hash-backed total map presuming zero for every absent key."""

    __slots__ = ()

    @classmethod
    def _default_commonality(cls) -> Commonality[Any, Any]:
        return ZeroCommonality()


class NonZeroOrderedMap(TotalOrderedMap[K, N]):
    """Key-ordered total map presuming zero for every absent key."""

    __slots__ = ()

    @classmethod
    def _default_commonality(cls) -> Commonality[Any, Any]:
        return ZeroCommonality()
