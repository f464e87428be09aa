import pytest

from sortedmap import SortedMap


def _check_subtree(node, comparator, owner):
    """Verify order, balance and cached metrics below node; return (height, count, keys)."""
    if node is None:
        return 0, 0, []
    h_left, c_left, left_keys = _check_subtree(node.left, comparator, owner)
    h_right, c_right, right_keys = _check_subtree(node.right, comparator, owner)

    assert all(comparator(k, node.key) < 0 for k in left_keys), f"left of {node.key!r} out of order"
    assert all(comparator(k, node.key) > 0 for k in right_keys), f"right of {node.key!r} out of order"
    assert node.height == 1 + max(h_left, h_right)
    assert node.count == 1 + c_left + c_right
    assert node.balance_factor == h_right - h_left
    assert node.balance_factor in (-1, 0, 1), f"unbalanced at {node.key!r}"
    assert node._owner is owner

    return node.height, node.count, left_keys + [node.key] + right_keys


@pytest.fixture
def check_invariants():
    """Return a function asserting every structural invariant of a SortedMap."""
    def check(m: SortedMap):
        _, count, keys = _check_subtree(m._root, m.comparator, m._token)
        assert count == len(m)
        assert keys == list(m.keys())
        return keys
    return check


@pytest.fixture
def sample_map():
    m = SortedMap()
    for k in [5, 3, 8, 1, 4, 7, 9]:
        m.set(k, str(k))
    return m

