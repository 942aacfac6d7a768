from __future__ import annotations

import json
import logging
from typing import Any

import pytest

from totalmap import (
    CommonEntryError,
    DefaultCommonality,
    MalformedInputError,
    NeverThrown,
    NonZeroHashMap,
    NonZeroOrderedMap,
    StoreFlavor,
    TotalHashMap,
    TotalOrderedMap,
    ZeroCommonality,
)
from totalmap.serde import (
    CommonEntryPolicy,
    SerdeRuntimeConfig,
    TotalMapAdapter,
    common_entry_policy,
    common_entry_policy_from_env,
    from_pairs,
    resolve_common_entry_policy,
    serde_runtime_config_scope,
    to_dict,
    to_pairs,
)
from totalmap.total_map import flavor_of
from tests.order_helpers import assert_pairs, unordered_pairs

STR = DefaultCommonality(str)


def test_to_pairs_emits_only_uncommon_entries(map_type) -> None:
    m = map_type.from_pairs([("foo", "bar"), ("baz", "quux"), ("nil", "")], STR)
    assert unordered_pairs(to_pairs(m)) == [("baz", "quux"), ("foo", "bar")]
    assert to_dict(m) == {"foo": "bar", "baz": "quux"}


def test_from_pairs_round_trip(map_type) -> None:
    m = map_type.from_pairs([("foo", "bar"), ("baz", "quux")], STR)
    flavor = "ordered" if map_type is TotalOrderedMap else "hash"
    restored = from_pairs(to_pairs(m), commonality=STR, flavor=flavor)
    assert type(restored) is map_type
    assert restored == m
    assert_pairs(restored, [("foo", "bar"), ("baz", "quux")])


def test_from_pairs_later_duplicates_win() -> None:
    m = from_pairs([("a", 1), ("a", 2), ("b", 3), ("b", 0)], commonality=ZeroCommonality())
    assert to_dict(m) == {"a": 2}


def test_from_pairs_accepts_mapping_and_map_type() -> None:
    m = from_pairs({"b": 1, "a": 2}, flavor="ordered", map_type=NonZeroOrderedMap)
    assert type(m) is NonZeroOrderedMap
    assert m.commonality == ZeroCommonality()
    assert list(m.keys()) == ["a", "b"]


@pytest.mark.parametrize("bad", [[("a", 1, 2)], [("a",)], [5], ["ab"]])
def test_from_pairs_rejects_non_pairs(bad) -> None:
    with pytest.raises(MalformedInputError) as exc_info:
        from_pairs(bad, commonality=ZeroCommonality())
    assert exc_info.value.errors[0]["type"] == "pair_shape"


def test_common_pairs_are_normalized_by_default(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="totalmap.serde"):
        m = from_pairs([("foo", "bar"), ("gone", "")], commonality=STR)
    assert to_dict(m) == {"foo": "bar"}
    m.assert_canonical()
    assert "dropped 1 common pairs" in caplog.text


def test_trust_policy_keeps_common_pairs() -> None:
    m = from_pairs([("foo", "bar"), ("gone", "")], commonality=STR, policy="trust")
    assert to_dict(m) == {"foo": "bar", "gone": ""}
    assert m.get("gone") == ""
    with pytest.raises(NeverThrown):
        m.assert_canonical()
    assert m.normalize() == 1
    m.assert_canonical()


def test_reject_policy_raises_common_entry_error() -> None:
    with pytest.raises(CommonEntryError) as exc_info:
        from_pairs([("foo", "bar"), ("gone", "")], commonality=STR, policy=CommonEntryPolicy.REJECT)
    assert exc_info.value.key == "gone"
    assert isinstance(exc_info.value, MalformedInputError)


def test_policy_resolution_precedence(env_scope) -> None:
    assert resolve_common_entry_policy() is CommonEntryPolicy.NORMALIZE
    with env_scope({"TOTALMAP_COMMON_ENTRY_POLICY": "trust"}):
        assert resolve_common_entry_policy() is CommonEntryPolicy.TRUST
        with serde_runtime_config_scope(SerdeRuntimeConfig(CommonEntryPolicy.REJECT)):
            assert resolve_common_entry_policy() is CommonEntryPolicy.REJECT
            with common_entry_policy("normalize"):
                assert resolve_common_entry_policy() is CommonEntryPolicy.NORMALIZE
                assert resolve_common_entry_policy("strict") is CommonEntryPolicy.REJECT


def test_unknown_policy_is_never() -> None:
    with pytest.raises(NeverThrown):
        resolve_common_entry_policy("lenient")


def test_adapter_json_round_trip(map_type) -> None:
    m = map_type.from_pairs([(1, 10), (2, 20), (3, 0)], ZeroCommonality())
    adapter = TotalMapAdapter.for_map(m, int, int)
    text = adapter.dump_json(m)
    assert json.loads(text) == {"1": 10, "2": 20}
    restored = adapter.validate_json(text)
    assert type(restored) is map_type
    assert restored == m


def test_adapter_dump_python_is_json_compatible() -> None:
    m = NonZeroHashMap(pairs=[("a", 1.5)])
    adapter = TotalMapAdapter(str, float, commonality=ZeroCommonality())
    assert adapter.dump_python(m) == {"a": 1.5}
    assert json.loads(adapter.dump_json(m, indent=2)) == {"a": 1.5}


def test_adapter_accepts_pair_lists_and_coerces_types() -> None:
    adapter = TotalMapAdapter(int, int, commonality=ZeroCommonality(), flavor="ordered")
    m = adapter.validate_json('[["3", 1], [1, "2"], [2, 0]]')
    assert isinstance(m, TotalOrderedMap)
    assert list(m.items()) == [(1, 2), (3, 1)]

    m = adapter.validate_python({"5": 5})
    assert to_dict(m) == {5: 5}


@pytest.mark.parametrize(
    "payload",
    ['{"a": "not-a-number"}', "[1, 2, 3]", "not json", '"scalar"'],
)
def test_adapter_malformed_json_raises(payload: str) -> None:
    adapter = TotalMapAdapter(str, int, commonality=ZeroCommonality())
    with pytest.raises(MalformedInputError) as exc_info:
        adapter.validate_json(payload)
    assert exc_info.value.errors


def test_adapter_respects_common_entry_policy() -> None:
    adapter = TotalMapAdapter(str, int, commonality=ZeroCommonality(), policy="reject")
    with pytest.raises(CommonEntryError):
        adapter.validate_python({"a": 0})
    with common_entry_policy("trust"):
        trusted = TotalMapAdapter(str, int, commonality=ZeroCommonality()).validate_python(
            {"a": 0}
        )
    assert to_dict(trusted) == {"a": 0}


def test_adapter_without_commonality_uses_map_type_default() -> None:
    adapter = TotalMapAdapter(str, int, map_type=NonZeroHashMap)
    m = adapter.validate_json('{"a": 0, "b": 2}')
    assert type(m) is NonZeroHashMap
    assert to_dict(m) == {"b": 2}


def test_hash_adapter_builds_total_hash_map() -> None:
    m = TotalMapAdapter(str, str, commonality=STR).validate_json('{"k": "v"}')
    assert type(m) is TotalHashMap


def test_from_pairs_follows_map_type_flavor() -> None:
    m = from_pairs([("b", 1), ("a", 2)], map_type=NonZeroOrderedMap)
    assert type(m) is NonZeroOrderedMap
    assert flavor_of(m) is StoreFlavor.ORDERED
    assert list(m.keys()) == ["a", "b"]


def test_adapter_follows_map_type_flavor() -> None:
    adapter = TotalMapAdapter(str, int, map_type=NonZeroOrderedMap)
    assert adapter.flavor is StoreFlavor.ORDERED
    m = adapter.validate_json('{"b": 1, "a": 2}')
    assert list(m.keys()) == ["a", "b"]


@pytest.mark.parametrize("policy", ["normalize", "trust"])
def test_from_pairs_unhashable_key_is_malformed(policy: str) -> None:
    with pytest.raises(MalformedInputError) as exc_info:
        from_pairs([("ok", 1), (["a"], 1)], commonality=ZeroCommonality(), policy=policy)
    assert exc_info.value.errors == [{"type": "invalid_key", "index": 1}]


def test_from_pairs_unhashable_common_key_is_malformed() -> None:
    with pytest.raises(MalformedInputError) as exc_info:
        from_pairs([(["a"], 0)], commonality=ZeroCommonality())
    assert exc_info.value.errors[0]["type"] == "invalid_key"


def test_adapter_incomparable_ordered_keys_are_malformed() -> None:
    adapter = TotalMapAdapter(Any, int, commonality=ZeroCommonality(), flavor="ordered")
    with pytest.raises(MalformedInputError) as exc_info:
        adapter.validate_json('[[1, 5], ["b", 6]]')
    assert exc_info.value.errors == [{"type": "invalid_key", "index": 1}]


def test_unknown_env_policy_is_ignored(env_scope) -> None:
    with env_scope({"TOTALMAP_COMMON_ENTRY_POLICY": "lenient"}):
        assert common_entry_policy_from_env() is None
        assert resolve_common_entry_policy() is CommonEntryPolicy.NORMALIZE
        m = from_pairs([("a", 1), ("b", 0)], commonality=ZeroCommonality())
    assert to_dict(m) == {"a": 1}
