"""Ordered structural equality of element sequences.

This comparison is the guard that stops the two replicas from echoing each
other's writes forever, so it is kept explicit: same length, and element i
of one equals element i of the other by value (``==``), not by identity.
"""

from typing import Any, Sequence


def sequences_equal(left: Sequence[Any], right: Sequence[Any]) -> bool:
    """Compare two sequences element-wise, order-sensitive.

    Args:
        left: First sequence (list, tuple, ...)
        right: Second sequence

    Returns:
        True if both have the same length and every pair of elements at the
        same position compares equal
    """
    if len(left) != len(right):
        return False

    for a, b in zip(left, right):
        if a is b:
            continue
        if a != b:
            return False

    return True
