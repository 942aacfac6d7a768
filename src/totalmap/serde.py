"""Conversion between total maps and external sequences of (key, value) pairs.

Only stored (uncommon) pairs cross this boundary. The commonality is never
serialized; the consumer supplies it again when loading.

Incoming pairs may legally hold common values (another producer, an older
policy, a hand-edited file). What happens to them is a
:class:`CommonEntryPolicy`:

- ``NORMALIZE`` (default): drop them, so the result is canonical.
- ``TRUST``: store them as given, without looking.
- ``REJECT``: raise :class:`~totalmap.exceptions.CommonEntryError`.

Policy resolution precedence:

1. explicit ``policy`` argument
2. ``common_entry_policy(...)`` scope
3. runtime config (``set_serde_runtime_config``)
4. ``TOTALMAP_COMMON_ENTRY_POLICY``
5. ``NORMALIZE``
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Iterable, Iterator, Mapping, TypeVar

from pydantic import TypeAdapter, ValidationError

from totalmap.commonality import Commonality
from totalmap.exceptions import CommonEntryError, MalformedInputError
from totalmap.invariants import never
from totalmap.store import BackingStore, StoreFlavor, make_store, normalize_flavor
from totalmap.total_map import TotalHashMap, TotalMap, TotalOrderedMap, flavor_of

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

_COMMON_ENTRY_POLICY_ENV = "TOTALMAP_COMMON_ENTRY_POLICY"


class CommonEntryPolicy(str, Enum):
    NORMALIZE = "normalize"
    TRUST = "trust"
    REJECT = "reject"


@dataclass(frozen=True)
class SerdeRuntimeConfig:
    default_policy: CommonEntryPolicy | None = None


_COMMON_ENTRY_POLICY_CONTEXT: ContextVar[CommonEntryPolicy | None] = ContextVar(
    "totalmap_common_entry_policy",
    default=None,
)
_SERDE_RUNTIME_CONFIG: ContextVar[SerdeRuntimeConfig] = ContextVar(
    "totalmap_serde_runtime_config",
    default=SerdeRuntimeConfig(),
)


def normalize_policy(policy: CommonEntryPolicy | str) -> CommonEntryPolicy:
    if isinstance(policy, CommonEntryPolicy):
        return policy
    normalized = str(policy).strip().lower()
    if normalized == "strict":
        return CommonEntryPolicy.REJECT
    for candidate in CommonEntryPolicy:
        if candidate.value == normalized:
            return candidate
    never(
        "unknown common-entry policy",
        policy=policy,
        allowed=[candidate.value for candidate in CommonEntryPolicy],
    )


def resolve_common_entry_policy(
    policy: CommonEntryPolicy | str | None = None,
) -> CommonEntryPolicy:
    if policy is not None:
        return normalize_policy(policy)
    context_policy = _COMMON_ENTRY_POLICY_CONTEXT.get()
    if context_policy is not None:
        return context_policy
    configured = _SERDE_RUNTIME_CONFIG.get().default_policy
    if configured is not None:
        return configured
    env_policy = common_entry_policy_from_env()
    if env_policy is not None:
        return env_policy
    return CommonEntryPolicy.NORMALIZE


def common_entry_policy_from_env() -> CommonEntryPolicy | None:
    """Policy named by ``TOTALMAP_COMMON_ENTRY_POLICY``; unknown names are ignored."""
    raw = os.environ.get(_COMMON_ENTRY_POLICY_ENV)
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if not normalized:
        return None
    if normalized == "strict":
        return CommonEntryPolicy.REJECT
    for candidate in CommonEntryPolicy:
        if candidate.value == normalized:
            return candidate
    logger.debug("ignoring unknown %s=%r", _COMMON_ENTRY_POLICY_ENV, raw)
    return None


def set_common_entry_policy(
    policy: CommonEntryPolicy | str,
) -> Token[CommonEntryPolicy | None]:
    return _COMMON_ENTRY_POLICY_CONTEXT.set(normalize_policy(policy))


def reset_common_entry_policy(token: Token[CommonEntryPolicy | None]) -> None:
    _COMMON_ENTRY_POLICY_CONTEXT.reset(token)


@contextmanager
def common_entry_policy(policy: CommonEntryPolicy | str) -> Iterator[None]:
    token = set_common_entry_policy(policy)
    try:
        yield
    finally:
        reset_common_entry_policy(token)


def set_serde_runtime_config(config: SerdeRuntimeConfig) -> Token[SerdeRuntimeConfig]:
    return _SERDE_RUNTIME_CONFIG.set(config)


def reset_serde_runtime_config(token: Token[SerdeRuntimeConfig]) -> None:
    _SERDE_RUNTIME_CONFIG.reset(token)


@contextmanager
def serde_runtime_config_scope(config: SerdeRuntimeConfig) -> Iterator[None]:
    token = set_serde_runtime_config(config)
    try:
        yield
    finally:
        reset_serde_runtime_config(token)


# ----------------------------------------------------------------------
# Pair sequences


def to_pairs(total_map: TotalMap[K, V]) -> list[tuple[K, V]]:
    """The stored pairs of ``total_map``, in its store's natural order."""
    return list(total_map.items())


def to_dict(total_map: TotalMap[K, V]) -> dict[K, V]:
    return dict(total_map.items())


def _map_type_for(flavor: StoreFlavor) -> type[TotalMap[Any, Any]]:
    match flavor:
        case StoreFlavor.ORDERED:
            return TotalOrderedMap
        case _:
            return TotalHashMap


def _iter_pairs(pairs: Iterable[Any] | Mapping[Any, Any]) -> Iterator[tuple[Any, Any]]:
    if isinstance(pairs, Mapping):
        yield from pairs.items()
        return
    for index, item in enumerate(pairs):
        if isinstance(item, (str, bytes)):
            raise MalformedInputError(
                f"item {index} is not a (key, value) pair: {item!r}",
                errors=[{"type": "pair_shape", "index": index}],
            )
        try:
            key, value = item
        except (TypeError, ValueError) as exc:
            raise MalformedInputError(
                f"item {index} is not a (key, value) pair: {item!r}",
                errors=[{"type": "pair_shape", "index": index}],
            ) from exc
        yield key, value


def _resolve_flavor(
    flavor: StoreFlavor | str | None,
    map_type: type[TotalMap[Any, Any]] | None,
) -> StoreFlavor:
    if flavor is not None:
        return normalize_flavor(flavor)
    if map_type is not None:
        return map_type.default_flavor
    return StoreFlavor.HASH


def from_pairs(
    pairs: Iterable[Any] | Mapping[Any, Any],
    *,
    commonality: Commonality[K, V] | None = None,
    flavor: StoreFlavor | str | None = None,
    policy: CommonEntryPolicy | str | None = None,
    map_type: type[TotalMap[K, V]] | None = None,
) -> TotalMap[K, V]:
    """Build a total map from a sequence (or mapping) of pairs.

    Later duplicates of a key win. Without ``flavor`` the store follows
    ``map_type.default_flavor`` (hash if neither is given); ``map_type``
    defaults to the class that matches the flavor. Without ``commonality``
    that class's default applies. Keys the store cannot hold (unhashable, or
    not comparable in the ordered flavor) raise ``MalformedInputError``.
    """
    resolved_flavor = _resolve_flavor(flavor, map_type)
    resolved_policy = resolve_common_entry_policy(policy)
    target = map_type if map_type is not None else _map_type_for(resolved_flavor)
    resolved_commonality = (
        commonality if commonality is not None else target._default_commonality()
    )
    store: BackingStore[Any, Any] = make_store(resolved_flavor)
    dropped = 0
    for index, (key, value) in enumerate(_iter_pairs(pairs)):
        keep = resolved_policy is CommonEntryPolicy.TRUST or not (
            resolved_commonality.is_common(key, value)
        )
        if not keep and resolved_policy is CommonEntryPolicy.REJECT:
            raise CommonEntryError(key, value)
        try:
            if keep:
                store[key] = value
            else:
                store.pop(key, None)
        except TypeError as exc:
            raise MalformedInputError(
                f"item {index} has an invalid key: {key!r}",
                errors=[{"type": "invalid_key", "index": index}],
            ) from exc
        if not keep:
            dropped += 1
    if dropped:
        logger.debug("from_pairs dropped %d common pairs", dropped)
    return target._adopt(resolved_commonality, store)


# ----------------------------------------------------------------------
# pydantic-backed codec


class TotalMapAdapter(Generic[K, V]):
    """Codec between total maps and JSON / JSON-compatible Python data.

    Keys and values are validated and coerced by pydantic against
    ``key_type`` and ``value_type``. The external form is a mapping of the
    stored pairs; on input a list of ``[key, value]`` pairs is accepted too.
    """

    def __init__(
        self,
        key_type: Any,
        value_type: Any,
        *,
        commonality: Commonality[K, V] | None = None,
        flavor: StoreFlavor | str | None = None,
        policy: CommonEntryPolicy | str | None = None,
        map_type: type[TotalMap[K, V]] | None = None,
    ) -> None:
        self.key_type = key_type
        self.value_type = value_type
        self.commonality = commonality
        self.flavor = _resolve_flavor(flavor, map_type)
        self.policy = policy
        self.map_type = map_type
        self._mapping_adapter: TypeAdapter[Any] = TypeAdapter(dict[key_type, value_type])
        self._input_adapter: TypeAdapter[Any] = TypeAdapter(
            dict[key_type, value_type] | list[tuple[key_type, value_type]]
        )

    @classmethod
    def for_map(
        cls,
        total_map: TotalMap[K, V],
        key_type: Any,
        value_type: Any,
        *,
        policy: CommonEntryPolicy | str | None = None,
    ) -> TotalMapAdapter[K, V]:
        """Adapter that rebuilds maps shaped like ``total_map``."""
        return cls(
            key_type,
            value_type,
            commonality=total_map.commonality,
            flavor=flavor_of(total_map),
            policy=policy,
            map_type=type(total_map),
        )

    def dump_python(self, total_map: TotalMap[K, V], *, mode: str = "json") -> dict[Any, Any]:
        return self._mapping_adapter.dump_python(to_dict(total_map), mode=mode)

    def dump_json(self, total_map: TotalMap[K, V], *, indent: int | None = None) -> str:
        return self._mapping_adapter.dump_json(to_dict(total_map), indent=indent).decode(
            "utf-8"
        )

    def validate_python(self, payload: object) -> TotalMap[K, V]:
        try:
            pairs = self._input_adapter.validate_python(payload)
        except ValidationError as exc:
            raise MalformedInputError(
                f"malformed total map payload: {exc.error_count()} error(s)",
                errors=exc.errors(),
            ) from exc
        return self._build(pairs)

    def validate_json(self, data: str | bytes) -> TotalMap[K, V]:
        try:
            pairs = self._input_adapter.validate_json(data)
        except ValidationError as exc:
            raise MalformedInputError(
                f"malformed total map JSON: {exc.error_count()} error(s)",
                errors=exc.errors(),
            ) from exc
        return self._build(pairs)

    def _build(self, pairs: Mapping[Any, Any] | list[tuple[Any, Any]]) -> TotalMap[K, V]:
        return from_pairs(
            pairs,
            commonality=self.commonality,
            flavor=self.flavor,
            policy=self.policy,
            map_type=self.map_type,
        )
