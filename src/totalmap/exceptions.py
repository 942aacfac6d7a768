"""Exception hierarchy for total maps."""

from __future__ import annotations

from typing import Any, Sequence


class TotalMapError(Exception):
    """Base class for errors raised by totalmap."""


class MalformedInputError(TotalMapError, ValueError):
    """Raised when a serialized pair sequence cannot be turned into a total map.

    ``errors`` carries the underlying validation details (for instance the
    pydantic error list) when there are any.
    """

    def __init__(self, message: str, *, errors: Sequence[Any] = ()):
        super().__init__(message)
        self.errors = list(errors)


class CommonEntryError(MalformedInputError):
    """Raised when a serialized pair holds a common value and the policy rejects it."""

    def __init__(self, key: object, value: object):
        super().__init__(
            f"pair for key {key!r} holds the common value {value!r}",
            errors=[{"type": "common_entry", "key": key, "value": value}],
        )
        self.key = key
        self.value = value


class EntryBorrowError(TotalMapError, RuntimeError):
    """Raised when a map is used while one of its entry handles is alive."""


class EntryReleasedError(TotalMapError, RuntimeError):
    """Raised when an entry handle is used after it was released."""


class NeverThrown(RuntimeError):
    """Sentinel exception for states that must be unreachable.

    Raised by :func:`totalmap.invariants.never`. ``env`` holds the metadata the
    caller attached to the marker.
    """

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.reason = message
        self.env = dict(env or {})

    @property
    def payload(self) -> dict[str, object]:
        return {"reason": self.reason, "env": dict(self.env)}
