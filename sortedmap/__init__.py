"""Ordered key-value map backed by an AVL tree."""

import logging

from .bounds import EXCLUSIVE, INCLUSIVE, Bound, exclusive, inclusive
from .indexing import Entry, SortedMap, TreeStructureError
from .sorting import (
    Comparator,
    Order,
    as_comparator,
    by_key,
    natural_comparator,
    reverse_comparator,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "SortedMap",
    "Entry",
    "TreeStructureError",
    "Bound",
    "inclusive",
    "exclusive",
    "INCLUSIVE",
    "EXCLUSIVE",
    "Comparator",
    "Order",
    "as_comparator",
    "by_key",
    "natural_comparator",
    "reverse_comparator",
]
