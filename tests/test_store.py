from __future__ import annotations

import pytest

from totalmap import BackingStore, NeverThrown, SortedStore, StoreFlavor
from totalmap.store import copy_store, make_store, normalize_flavor


def test_sorted_store_keeps_keys_sorted() -> None:
    store = SortedStore([(3, "c"), (1, "a"), (2, "b")])
    store[0] = "z"
    assert list(store) == [0, 1, 2, 3]
    assert list(reversed(store)) == [3, 2, 1, 0]
    assert list(store.items()) == [(0, "z"), (1, "a"), (2, "b"), (3, "c")]
    assert store.first_key() == 0
    assert store.last_key() == 3


def test_sorted_store_overwrite_does_not_duplicate_key() -> None:
    store = SortedStore()
    store["a"] = 1
    store["a"] = 2
    assert len(store) == 1
    assert store["a"] == 2


def test_sorted_store_delete_and_pop() -> None:
    store = SortedStore([("a", 1), ("b", 2), ("c", 3)])
    del store["b"]
    assert list(store) == ["a", "c"]
    assert store.pop("a") == 1
    assert store.pop("missing", None) is None
    with pytest.raises(KeyError):
        del store["missing"]
    assert list(store.items()) == [("c", 3)]


def test_sorted_store_empty_bounds() -> None:
    store = SortedStore()
    with pytest.raises(KeyError):
        store.first_key()
    with pytest.raises(KeyError):
        store.last_key()


def test_sorted_store_equality_and_copy() -> None:
    store = SortedStore([("b", 2), ("a", 1)])
    clone = store.copy()
    clone["c"] = 3
    assert store == {"a": 1, "b": 2}
    assert store == SortedStore([("a", 1), ("b", 2)])
    assert clone != store
    assert repr(store) == "SortedStore({'a': 1, 'b': 2})"


def test_sorted_store_rejects_incomparable_keys() -> None:
    store = SortedStore([(1, "a")])
    with pytest.raises(TypeError):
        store["b"] = "b"


@pytest.mark.parametrize(
    "flavor, expected",
    [
        (StoreFlavor.HASH, dict),
        (StoreFlavor.ORDERED, SortedStore),
        ("hash", dict),
        (" Ordered ", SortedStore),
    ],
)
def test_make_store_by_flavor(flavor, expected) -> None:
    store = make_store(flavor)
    assert type(store) is expected
    assert isinstance(store, BackingStore)
    assert len(store) == 0


def test_normalize_flavor_rejects_unknown_names() -> None:
    with pytest.raises(NeverThrown) as exc_info:
        normalize_flavor("btree")
    assert exc_info.value.env["allowed"] == ["hash", "ordered"]


def test_copy_store_is_shallow_and_independent() -> None:
    for original in ({"a": [1]}, SortedStore([("a", [1])])):
        clone = copy_store(original)
        clone["b"] = [2]
        assert "b" not in original
        assert clone["a"] is original["a"]


def test_sorted_store_deletes_keys_that_do_not_order() -> None:
    nan = float("nan")
    store = SortedStore([(1.0, "a"), (nan, "n"), (2.0, "b")])
    del store[nan]
    assert nan not in store
    assert list(store.items()) == [(1.0, "a"), (2.0, "b")]
    assert len(store) == 2


def test_sorted_store_missing_key_leaves_store_intact() -> None:
    store = SortedStore([("a", 1)])
    with pytest.raises(KeyError):
        del store["b"]
    assert list(store.items()) == [("a", 1)]


def test_sorted_store_out_of_sync_index_is_never() -> None:
    store = SortedStore([("a", 1), ("b", 2)])
    store._keys.remove("b")
    with pytest.raises(NeverThrown):
        del store["b"]
    assert store["b"] == 2
