from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "totalmap.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

_POLICY_NAMES = {"normalize", "trust", "reject", "strict"}


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def serialization_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("serialization", {})
    return section if isinstance(section, dict) else {}


def invariant_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("invariants", {})
    return section if isinstance(section, dict) else {}


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def common_entry_policy_name(section: TomlTable | None) -> str | None:
    """The ``common_entries`` policy name of a ``[serialization]`` table, if valid."""
    if section is None:
        return None
    if not isinstance(section, dict):
        return None
    value = section.get("common_entries")
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    return normalized if normalized in _POLICY_NAMES else None


def strict_mode_enabled(section: TomlTable | None) -> bool:
    if section is None:
        return False
    if not isinstance(section, dict):
        return False
    return _as_bool(section.get("strict"))


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged
