from __future__ import annotations

import os
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from totalmap import config
from totalmap.invariants import (
    StrictModeConfig,
    set_strict_mode_config,
    strict_mode_config_scope,
)
from totalmap.serde import (
    CommonEntryPolicy,
    SerdeRuntimeConfig,
    common_entry_policy_from_env,
    normalize_policy,
    serde_runtime_config_scope,
    set_serde_runtime_config,
)


_STRICT_VALUES = {"1", "true", "yes", "on", "strict"}
_LENIENT_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class RuntimePolicyConfig:
    strict_mode_enabled: bool = False
    common_entry_policy: CommonEntryPolicy | None = None


def _env_optional_flag(name: str) -> bool | None:
    value = os.getenv(name, "").strip().lower()
    if value in _STRICT_VALUES:
        return True
    if value in _LENIENT_VALUES:
        return False
    return None


def _env_flag(name: str) -> bool:
    return bool(_env_optional_flag(name))


def runtime_policy_from_env() -> RuntimePolicyConfig:
    return RuntimePolicyConfig(
        strict_mode_enabled=_env_flag("TOTALMAP_STRICT_MODE"),
        common_entry_policy=common_entry_policy_from_env(),
    )


def runtime_policy_from_config(
    root: Path | None = None, config_path: Path | None = None
) -> RuntimePolicyConfig:
    """Policy from ``totalmap.toml``, with environment variables taking precedence.

    ``TOTALMAP_STRICT_MODE`` overrides ``[invariants] strict`` in both
    directions (``1``/``on`` or ``0``/``off``); unset or unrecognized values
    leave the file setting alone.
    """
    serialization = config.serialization_defaults(root=root, config_path=config_path)
    invariants = config.invariant_defaults(root=root, config_path=config_path)
    configured = {
        "strict": config.strict_mode_enabled(invariants),
        "common_entries": config.common_entry_policy_name(serialization),
    }
    env_policy = common_entry_policy_from_env()
    overrides = {
        "strict": _env_optional_flag("TOTALMAP_STRICT_MODE"),
        "common_entries": env_policy.value if env_policy is not None else None,
    }
    merged = config.merge_payload(overrides, configured)
    policy_name = merged.get("common_entries")
    return RuntimePolicyConfig(
        strict_mode_enabled=bool(merged.get("strict")),
        common_entry_policy=(
            normalize_policy(policy_name) if isinstance(policy_name, str) else None
        ),
    )


def apply_runtime_policy(config: RuntimePolicyConfig) -> None:
    set_strict_mode_config(StrictModeConfig(enabled=config.strict_mode_enabled))
    set_serde_runtime_config(SerdeRuntimeConfig(default_policy=config.common_entry_policy))


def apply_runtime_policy_from_env() -> None:
    apply_runtime_policy(runtime_policy_from_env())


@contextmanager
def runtime_policy_scope(config: RuntimePolicyConfig) -> Iterator[None]:
    with ExitStack() as stack:
        stack.enter_context(
            strict_mode_config_scope(StrictModeConfig(enabled=config.strict_mode_enabled))
        )
        stack.enter_context(
            serde_runtime_config_scope(
                SerdeRuntimeConfig(default_policy=config.common_entry_policy)
            )
        )
        yield
