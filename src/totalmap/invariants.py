"""Invariant markers and strict-mode control."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator, NoReturn

from totalmap.exceptions import NeverThrown

if TYPE_CHECKING:
    from totalmap.commonality import Commonality

_STRICT_MODE_OVERRIDE: ContextVar[bool | None] = ContextVar(
    "totalmap_strict_mode_override",
    default=None,
)


@dataclass(frozen=True)
class StrictModeConfig:
    enabled: bool = False


_STRICT_MODE_CONFIG: ContextVar[StrictModeConfig] = ContextVar(
    "totalmap_strict_mode_config",
    default=StrictModeConfig(),
)


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as unreachable.

    The keyword payload is metadata only; it travels on the raised
    :class:`NeverThrown` as ``env``.
    """
    raise NeverThrown(reason or "never() marker reached", env=env)


def strict_mode() -> bool:
    override = _STRICT_MODE_OVERRIDE.get()
    if override is not None:
        return bool(override)
    return bool(_STRICT_MODE_CONFIG.get().enabled)


def set_strict_mode_config(config: StrictModeConfig) -> Token[StrictModeConfig]:
    return _STRICT_MODE_CONFIG.set(config)


def reset_strict_mode_config(token: Token[StrictModeConfig]) -> None:
    _STRICT_MODE_CONFIG.reset(token)


@contextmanager
def strict_mode_config_scope(config: StrictModeConfig) -> Iterator[None]:
    token = set_strict_mode_config(config)
    try:
        yield
    finally:
        reset_strict_mode_config(token)


@contextmanager
def strict_mode_scope(enabled: bool) -> Iterator[None]:
    token = _STRICT_MODE_OVERRIDE.set(bool(enabled))
    try:
        yield
    finally:
        _STRICT_MODE_OVERRIDE.reset(token)


def common_keys(
    items: Iterable[tuple[object, object]],
    commonality: Commonality,
) -> list[object]:
    """Return the keys of ``items`` whose values are common, in iteration order."""
    return [key for key, value in items if commonality.is_common(key, value)]


def require_canonical(
    items: Iterable[tuple[object, object]],
    commonality: Commonality,
    *,
    source: str,
) -> None:
    """Fail via :func:`never` if any stored pair holds a common value."""
    offending = common_keys(items, commonality)
    if offending:
        never(
            "canonical-storage invariant violated",
            source=source,
            keys=[repr(key) for key in offending],
        )
