"""Order-independent comparison of selected option indices."""

from __future__ import annotations

from collections.abc import Iterable


def normalize_indices(indices: Iterable[int]) -> tuple[int, ...]:
    """Return the distinct indices in ascending order."""
    return tuple(sorted(set(indices)))


def answers_match(correct_indices: Iterable[int], selected_indices: Iterable[int]) -> bool:
    """Return True when both collections hold the same set of indices.

    Indices that do not exist among the question's options simply never match;
    range validation is left to the caller.
    """
    expected = normalize_indices(correct_indices)
    selected = normalize_indices(selected_indices)
    if len(expected) != len(selected):
        return False
    return all(a == b for a, b in zip(expected, selected))
