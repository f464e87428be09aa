"""
Comparators and orders used by SortedMap.

A comparator is a function ``cmp(a, b) -> int``: negative when ``a`` sorts
before ``b``, zero when they occupy the same position and positive otherwise.
"""

from typing import Any, Callable, Sequence, Union

Comparator = Callable[[Any, Any], int]
Order = Union[None, Comparator, Sequence["Order"]]


def natural_comparator(a: Any, b: Any) -> int:
    """Compare two keys using their own ``<`` and ``>``."""
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def by_key(fn: Callable[[Any], Any]) -> Comparator:
    """Return a comparator that orders keys by ``fn(key)``."""
    def comparator(a: Any, b: Any) -> int:
        return natural_comparator(fn(a), fn(b))
    return comparator


def as_comparator(order: Order = None) -> Comparator:
    """Convert an Order into a Comparator.

    ``None`` means natural ordering. A sequence of orders compares
    lexicographically: the first one that does not report equal wins.
    """
    if order is None:
        return natural_comparator
    if callable(order):
        return order
    if isinstance(order, (list, tuple)):
        comparators = [as_comparator(o) for o in order]
        if len(comparators) == 1:
            return comparators[0]

        def chained(a: Any, b: Any) -> int:
            for cmp in comparators:
                result = cmp(a, b)
                if result != 0:
                    return result
            return 0
        return chained
    raise TypeError(f"Cannot build a comparator from {order!r}")


class _Reversed:
    """Comparator wrapper that flips the sign of another comparator."""
    __slots__ = ('inner',)

    def __init__(self, inner: Comparator):
        self.inner = inner

    def __call__(self, a: Any, b: Any) -> int:
        return self.inner(b, a)

    def __repr__(self):
        return f"reverse_comparator({self.inner!r})"


def reverse_comparator(comparator: Comparator) -> Comparator:
    """Return the order-reversed comparator; reversing twice unwraps."""
    if isinstance(comparator, _Reversed):
        return comparator.inner
    return _Reversed(comparator)


def cmp_lt(result: int) -> bool: return result < 0
def cmp_le(result: int) -> bool: return result <= 0
def cmp_ne(result: int) -> bool: return result != 0
def cmp_ge(result: int) -> bool: return result >= 0
def cmp_gt(result: int) -> bool: return result > 0
