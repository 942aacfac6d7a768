"""Commonality for collection values whose common value is the empty collection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Sized, TypeVar

C = TypeVar("C", bound=Sized)


@dataclass(frozen=True)
class EmptyCommonality(Generic[C]):
    """The common value is ``factory()``; any value of length zero is common.

    Only ``len()`` is consulted, so the collection type needs neither ``==``
    nor an ordering. This covers lists, tuples, strings, bytes, sets, dicts,
    deques and nested total maps.
    """

    factory: Callable[[], C] = list  # type: ignore[assignment]

    def common(self, key: object) -> C:
        return self.factory()

    def is_common(self, key: object, value: C) -> bool:
        return len(value) == 0
