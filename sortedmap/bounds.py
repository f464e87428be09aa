"""
Range bound specs for SortedMap.get_range.

A bound is one of:

* ``None``: unbounded on that side.
* a bare key: inclusive bound.
* ``(key, "inclusive")`` or ``(key, "exclusive")``; ``inclusive(key)`` and
  ``exclusive(key)`` build these. A one-element ``(key,)`` or ``[key]`` is
  inclusive, so a bare 1-tuple key must be wrapped with ``inclusive()``.
* a predicate ``key -> bool`` saying whether the key is not too small (for
  the lower bound) or not too big (for the upper bound).

Each spec is compiled once per query into a test returning True when a key
falls outside that side of the range.
"""

from typing import Any, Callable, NamedTuple, Optional

from .sorting import Comparator, cmp_ge, cmp_gt, cmp_le, cmp_lt

INCLUSIVE = "inclusive"
EXCLUSIVE = "exclusive"

OutsideTest = Callable[[Any], bool]


class Bound(NamedTuple):
    key: Any
    kind: str = INCLUSIVE


def inclusive(key: Any) -> Bound:
    return Bound(key, INCLUSIVE)


def exclusive(key: Any) -> Bound:
    return Bound(key, EXCLUSIVE)


def _as_pair(spec: Any) -> Optional[Bound]:
    """Return the spec as a Bound if it is a (key, kind) pair or a lone (key,)."""
    if not isinstance(spec, (tuple, list)):
        return None
    if len(spec) == 1:
        return Bound(spec[0])
    if len(spec) == 2 and isinstance(spec[1], str) and spec[1] in (INCLUSIVE, EXCLUSIVE):
        return Bound(spec[0], spec[1])
    return None


def _never(key: Any) -> bool:
    return False


def lower_test(spec: Any, comparator: Comparator) -> OutsideTest:
    """Compile a min bound into a ``too_small(key)`` test."""
    if spec is None:
        return _never
    if callable(spec):
        return lambda key: not spec(key)

    pair = _as_pair(spec)
    if pair is None:
        pair = Bound(spec)
    outside = cmp_le if pair.kind == EXCLUSIVE else cmp_lt
    bound_key = pair.key
    return lambda key: outside(comparator(key, bound_key))


def upper_test(spec: Any, comparator: Comparator) -> OutsideTest:
    """Compile a max bound into a ``too_big(key)`` test."""
    if spec is None:
        return _never
    if callable(spec):
        return lambda key: not spec(key)

    pair = _as_pair(spec)
    if pair is None:
        pair = Bound(spec)
    outside = cmp_ge if pair.kind == EXCLUSIVE else cmp_gt
    bound_key = pair.key
    return lambda key: outside(comparator(key, bound_key))
