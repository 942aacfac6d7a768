"""Maps where every possible key has an associated value.

Only entries with *uncommon* values are stored; every other key is presumed
to hold the *common* value chosen by the map's commonality policy.
"""

from totalmap.commonality import (
    Commonality,
    ConstantCommonality,
    DefaultCommonality,
    KeyedCommonality,
)
from totalmap.empty import EmptyCommonality
from totalmap.entry import Entry
from totalmap.exceptions import (
    CommonEntryError,
    EntryBorrowError,
    EntryReleasedError,
    MalformedInputError,
    NeverThrown,
    TotalMapError,
)
from totalmap.invariants import never
from totalmap.nonzero import NonZeroHashMap, NonZeroOrderedMap, ZeroCommonality
from totalmap.store import BackingStore, SortedStore, StoreFlavor
from totalmap.total_map import TotalHashMap, TotalMap, TotalOrderedMap

__all__ = [
    "__version__",
    "BackingStore",
    "CommonEntryError",
    "Commonality",
    "ConstantCommonality",
    "DefaultCommonality",
    "EmptyCommonality",
    "Entry",
    "EntryBorrowError",
    "EntryReleasedError",
    "KeyedCommonality",
    "MalformedInputError",
    "NeverThrown",
    "NonZeroHashMap",
    "NonZeroOrderedMap",
    "SortedStore",
    "StoreFlavor",
    "TotalHashMap",
    "TotalMap",
    "TotalMapError",
    "TotalOrderedMap",
    "ZeroCommonality",
    "never",
]

__version__ = "0.1.0"
