import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Iterator, Optional, Tuple

from .bounds import lower_test, upper_test
from .sorting import Order, as_comparator, cmp_ne, reverse_comparator

logger = logging.getLogger(__name__)

Condition = Callable[["Entry"], bool]


class TreeStructureError(RuntimeError):
    """Raised when a structural precondition of the tree is violated."""


class Entry(ABC):
    """A located key/value pair of a SortedMap.

    Entries are handles: a map hands them out from lookups and inserts, and
    accepts them back in ``re_key`` / ``re_value`` to update that exact
    position without searching again. An entry goes stale once it is removed
    from its map.
    """
    __slots__ = ()

    @property
    @abstractmethod
    def key(self) -> Any:
        """Return the key stored at this entry."""

    @property
    @abstractmethod
    def value(self) -> Any:
        """Return the value stored at this entry."""

    @property
    @abstractmethod
    def is_live(self) -> bool:
        """Return True while the entry is still a member of a map."""

    def __iter__(self):
        yield self.key
        yield self.value

    def __repr__(self):
        return f"({self.key!r}, {self.value!r})"


class _OwnerToken:
    """Identity of one SortedMap generation; nodes record the token they belong to."""
    __slots__ = ()


class _View:
    """Restartable iterable: every iter() builds a fresh cursor."""
    __slots__ = ('_factory',)

    def __init__(self, factory: Callable[[], Iterator[Any]]):
        self._factory = factory

    def __iter__(self) -> Iterator[Any]:
        return self._factory()


def _walk(root, forward: bool = True) -> Iterator["SortedMap._Node"]:
    """In-order cursor over a subtree (mirrored when not forward)."""
    path = []
    node = root
    while path or node is not None:
        while node is not None:
            path.append(node)
            node = node.left if forward else node.right
        node = path.pop()
        yield node
        node = node.right if forward else node.left


def _range_walk(root, too_small, too_big, forward: bool = True) -> Iterator["SortedMap._Node"]:
    """In-order cursor that skips every subtree lying outside the bounds.

    A node that is too small cannot have anything in range on its left, and
    a node that is too big cannot have anything in range on its right, so
    those children are never pushed. Each visited key is tested once.
    """
    path = []
    node = root
    while path or node is not None:
        while node is not None:
            small = too_small(node.key)
            big = too_big(node.key)
            path.append((node, small, big))
            if forward:
                node = None if small else node.left
            else:
                node = None if big else node.right
        node, small, big = path.pop()
        if not small and not big:
            yield node
        if forward:
            node = None if big else node.right
        else:
            node = None if small else node.left


class SortedMap:
    """Map implementation using a height-balanced (AVL) binary search tree.

    Keys are ordered by a comparator built from ``order`` (natural ordering
    by default). Iteration yields Entry handles in ascending order.
    """

    class _Node(Entry):
        """Tree node; doubles as the Entry handle given to callers."""
        __slots__ = '_key', '_value', '_owner', 'left', 'right', 'height', 'count', 'balance_factor'

        def __init__(self, key, value, owner, left=None, right=None):
            self._key = key
            self._value = value
            self._owner = owner
            self.left = left
            self.right = right
            self.refresh()

        @property
        def key(self): return self._key

        @property
        def value(self): return self._value

        @property
        def is_live(self) -> bool: return self._owner is not None

        def refresh(self) -> None:
            """Recompute height, count and balance factor from the children."""
            h_left = self.left.height if self.left is not None else 0
            h_right = self.right.height if self.right is not None else 0
            c_left = self.left.count if self.left is not None else 0
            c_right = self.right.count if self.right is not None else 0
            self.height = 1 + max(h_left, h_right)
            self.count = 1 + c_left + c_right
            self.balance_factor = h_right - h_left

        def rotate_left(self) -> "SortedMap._Node":
            """Promote the right child; return the new subtree root."""
            pivot = self.right
            if pivot is None:
                raise TreeStructureError("rotate_left requires a right child")
            self.right = pivot.left
            pivot.left = self
            self.refresh()
            pivot.refresh()
            return pivot

        def rotate_right(self) -> "SortedMap._Node":
            """Promote the left child; return the new subtree root."""
            pivot = self.left
            if pivot is None:
                raise TreeStructureError("rotate_right requires a left child")
            self.left = pivot.right
            pivot.right = self
            self.refresh()
            pivot.refresh()
            return pivot

        def balance(self) -> "SortedMap._Node":
            """Restore |balance_factor| <= 1 here; return the new subtree root.

            Expects the children to be balanced already and this node to be
            off by at most 2.
            """
            if self.balance_factor < -1:
                if self.left.balance_factor > 0:
                    self.left = self.left.rotate_left()
                return self.rotate_right()
            if self.balance_factor > 1:
                if self.right.balance_factor < 0:
                    self.right = self.right.rotate_right()
                return self.rotate_left()
            return self

        def emancipate(self) -> None:
            """Cut the node loose from its map and subtree."""
            self._owner = None
            self.left = None
            self.right = None

    def __init__(self, order: Order = None, items: Optional[Iterable[Any]] = None):
        self._root: Optional[SortedMap._Node] = None
        self._comparator = as_comparator(order)
        self._token = _OwnerToken()
        if items is not None:
            self.update(items)

    def _make_node(self, key, value) -> "SortedMap._Node":
        return self._Node(key, value, self._token)

    def _validate(self, entry: Any) -> Optional["SortedMap._Node"]:
        """Return entry as a node of this map, or None if it is not one."""
        if not isinstance(entry, self._Node):
            return None
        if entry._owner is not self._token:
            return None
        return entry

    # ------------------ Accessors ------------------
    @property
    def size(self) -> int:
        return self._root.count if self._root is not None else 0

    @property
    def height(self) -> int:
        return self._root.height if self._root is not None else 0

    @property
    def comparator(self):
        return self._comparator

    def __len__(self) -> int:
        return self.size

    def __bool__(self) -> bool:
        return self._root is not None

    def __contains__(self, key: Any) -> bool:
        return self._find_node(key) is not None

    def __iter__(self) -> Iterator[Entry]:
        """Return a one-shot iterator over the entries in ascending order."""
        return _walk(self._root)

    def __reversed__(self) -> Iterator[Entry]:
        """Return a one-shot iterator over the entries in descending order."""
        return _walk(self._root, forward=False)

    def reversed(self) -> Iterable[Entry]:
        """Return a restartable iterable over the entries in descending order.

        Unlike ``reversed(map)``, which gives a single-use iterator, every
        ``iter()`` on the result starts a new descending walk.
        """
        return _View(lambda: _walk(self._root, forward=False))

    def keys(self) -> Iterable[Any]:
        return _View(lambda: (node.key for node in _walk(self._root)))

    def values(self) -> Iterable[Any]:
        return _View(lambda: (node.value for node in _walk(self._root)))

    def entries(self) -> Iterable[Tuple[Any, Any]]:
        return _View(lambda: ((node.key, node.value) for node in _walk(self._root)))

    items = entries

    def __repr__(self):
        body = ", ".join(f"{k!r}: {v!r}" for k, v in self.entries())
        return f"{type(self).__name__}({{{body}}})"

    # ------------------ Lookup ------------------
    def _find_node(self, key: Any) -> Optional["SortedMap._Node"]:
        walk = self._root
        while walk is not None:
            cmp = self._comparator(key, walk.key)
            if cmp < 0:
                walk = walk.left
            elif cmp > 0:
                walk = walk.right
            else:
                return walk
        return None

    def get_entry(self, key: Any) -> Optional[Entry]:
        """Return the entry with the given key, or None."""
        return self._find_node(key)

    def get(self, key: Any, default: Any = None) -> Any:
        """Return the value mapped to key, or default."""
        node = self._find_node(key)
        return default if node is None else node.value

    def __getitem__(self, key: Any) -> Any:
        node = self._find_node(key)
        if node is None:
            raise KeyError(key)
        return node.value

    def get_smallest_entry(self) -> Optional[Entry]:
        """Return the entry with the smallest key, or None if the map is empty."""
        walk = self._root
        if walk is None:
            return None
        while walk.left is not None:
            walk = walk.left
        return walk

    def get_largest_entry(self) -> Optional[Entry]:
        """Return the entry with the largest key, or None if the map is empty."""
        walk = self._root
        if walk is None:
            return None
        while walk.right is not None:
            walk = walk.right
        return walk

    # ------------------ Insertion ------------------
    def _node_or_compute(self, node, key, compute):
        """Find or insert key below node.

        Returns (new subtree root, located node, created flag). ``compute``
        runs once, only when a node has to be created.
        """
        if node is None:
            created = self._make_node(key, compute())
            return created, created, True

        cmp = self._comparator(key, node.key)
        if cmp < 0:
            node.left, located, created = self._node_or_compute(node.left, key, compute)
        elif cmp > 0:
            node.right, located, created = self._node_or_compute(node.right, key, compute)
        else:
            return node, node, False

        if not created:
            return node, located, False
        node.refresh()
        return node.balance(), located, True

    def _get_node_or_compute(self, key, compute) -> Tuple["SortedMap._Node", bool]:
        self._root, node, created = self._node_or_compute(self._root, key, compute)
        return node, created

    def set(self, key: Any, value: Any, replace: bool = True) -> Entry:
        """Map key to value and return the entry holding the mapping.

        When the key is already present and ``replace`` is False, the
        existing entry is returned untouched.
        """
        node, created = self._get_node_or_compute(key, lambda: value)
        if not created and replace:
            node._key = key
            node._value = value
        return node

    def __setitem__(self, key: Any, value: Any) -> None:
        self.set(key, value)

    def update(self, items: Any) -> None:
        """Set every (key, value) pair from a mapping or an iterable of pairs."""
        pairs = items.items() if isinstance(items, Mapping) else items
        for key, value in pairs:
            self.set(key, value)

    def get_entry_or_compute(self, key: Any, compute: Callable[[], Any]) -> Entry:
        """Return the entry for key, creating it with ``compute()`` if missing."""
        node, _ = self._get_node_or_compute(key, compute)
        return node

    def get_or_compute(self, key: Any, compute: Callable[[], Any]) -> Any:
        """Return the value for key, mapping it to ``compute()`` first if missing."""
        return self.get_entry_or_compute(key, compute).value

    # ------------------ Deletion ------------------
    def _detach(self, node) -> Optional["SortedMap._Node"]:
        """Return the subtree that takes node's place once node leaves it."""
        left, right = node.left, node.right
        if left is None:
            return right
        if right is None:
            return left

        right, successor = self._delete_smallest(right, None)
        successor.left = left
        successor.right = right
        successor.refresh()
        return successor.balance()

    def _delete(self, node, key, condition):
        """Returns (new subtree root, removed node or None)."""
        if node is None:
            return None, None

        cmp = self._comparator(key, node.key)
        if cmp < 0:
            node.left, removed = self._delete(node.left, key, condition)
        elif cmp > 0:
            node.right, removed = self._delete(node.right, key, condition)
        else:
            if condition is not None and not condition(node):
                return node, None
            return self._detach(node), node

        if removed is None:
            return node, None
        node.refresh()
        return node.balance(), removed

    def _delete_smallest(self, node, condition):
        if node is None:
            return None, None
        if node.left is None:
            if condition is not None and not condition(node):
                return node, None
            return node.right, node

        node.left, removed = self._delete_smallest(node.left, condition)
        if removed is None:
            return node, None
        node.refresh()
        return node.balance(), removed

    def _delete_largest(self, node, condition):
        if node is None:
            return None, None
        if node.right is None:
            if condition is not None and not condition(node):
                return node, None
            return node.left, node

        node.right, removed = self._delete_largest(node.right, condition)
        if removed is None:
            return node, None
        node.refresh()
        return node.balance(), removed

    def _finish_removal(self, root, removed) -> Optional[Entry]:
        self._root = root
        if removed is not None:
            removed.emancipate()
        return removed

    def delete(self, key: Any, condition: Optional[Condition] = None) -> Optional[Entry]:
        """Remove the entry with the given key.

        ``condition``, when given, is called once with the matching entry and
        the entry is only removed if it returns True.

        Returns the removed entry, or None if nothing was removed.
        """
        return self._finish_removal(*self._delete(self._root, key, condition))

    def delete_smallest(self, condition: Optional[Condition] = None) -> Optional[Entry]:
        """Remove the entry with the smallest key; see ``delete`` for ``condition``."""
        return self._finish_removal(*self._delete_smallest(self._root, condition))

    def delete_largest(self, condition: Optional[Condition] = None) -> Optional[Entry]:
        """Remove the entry with the largest key; see ``delete`` for ``condition``."""
        return self._finish_removal(*self._delete_largest(self._root, condition))

    def __delitem__(self, key: Any) -> None:
        if self.delete(key) is None:
            raise KeyError(key)

    def clear(self) -> None:
        """Remove every entry; previously returned entries become stale."""
        logger.debug("Clearing sorted map of %d entries", self.size)
        pending = [self._root] if self._root is not None else []
        while pending:
            node = pending.pop()
            if node.left is not None:
                pending.append(node.left)
            if node.right is not None:
                pending.append(node.right)
            node.emancipate()
        self._root = None
        self._token = _OwnerToken()

    # ------------------ Entry handles ------------------
    def re_key(self, entry: Entry, new_key: Any) -> bool:
        """Replace the key of entry with new_key.

        Only allowed when entry belongs to this map and new_key compares
        equal to the current key. Returns whether the key was replaced.
        """
        node = self._validate(entry)
        if node is None:
            return False
        if cmp_ne(self._comparator(new_key, node.key)):
            return False
        node._key = new_key
        return True

    def re_value(self, entry: Entry, new_value: Any) -> bool:
        """Replace the value of entry if it belongs to this map. Returns whether it did."""
        node = self._validate(entry)
        if node is None:
            return False
        node._value = new_value
        return True

    # ------------------ Ordering ------------------
    def get_range(self, min: Any = None, max: Any = None, *, reversed: bool = False) -> Iterable[Entry]:
        """Return an iterable over the entries between min and max.

        ``min`` and ``max`` each accept None (unbounded), a bare key
        (inclusive), a ``(key, "inclusive" | "exclusive")`` pair, or a
        predicate telling whether a key is not too small (resp. not too
        big). A one-element ``[key]`` is an inclusive bound. Entries come
        out ascending, or descending when ``reversed``.
        """
        def cursor():
            too_small = lower_test(min, self._comparator)
            too_big = upper_test(max, self._comparator)
            return _range_walk(self._root, too_small, too_big, forward=not reversed)
        return _View(cursor)

    def reverse(self) -> None:
        """Reverse the order of the map in place."""
        logger.debug("Reversing sorted map of %d entries", self.size)
        pending = [self._root] if self._root is not None else []
        while pending:
            node = pending.pop()
            node.left, node.right = node.right, node.left
            node.balance_factor = -node.balance_factor
            if node.left is not None:
                pending.append(node.left)
            if node.right is not None:
                pending.append(node.right)
        self._comparator = reverse_comparator(self._comparator)
