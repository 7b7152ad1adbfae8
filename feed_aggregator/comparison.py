"""Structural equality for feed item payloads."""

from typing import Any, Iterable


def deep_equal(a: Any, b: Any, exclude: Iterable[str] = ()) -> bool:
    """Compare two JSON-like values recursively.

    Dicts compare by key set and per-key value, lists and tuples compare
    element-wise, booleans never equal numbers. Keys named in ``exclude`` are
    masked on both sides of the top-level dict only.

    Args:
        a: First value
        b: Second value
        exclude: Top-level keys to ignore

    Returns:
        True if both values are structurally identical
    """
    masked = frozenset(exclude)
    if masked and isinstance(a, dict) and isinstance(b, dict):
        a = {k: v for k, v in a.items() if k not in masked}
        b = {k: v for k, v in b.items() if k not in masked}
    return _equal(a, b)


def _equal(a: Any, b: Any) -> bool:
    if isinstance(a, dict) or isinstance(b, dict):
        if not (isinstance(a, dict) and isinstance(b, dict)):
            return False
        if a.keys() != b.keys():
            return False
        return all(_equal(a[key], b[key]) for key in a)

    if isinstance(a, (list, tuple)) or isinstance(b, (list, tuple)):
        if not (isinstance(a, (list, tuple)) and isinstance(b, (list, tuple))):
            return False
        if len(a) != len(b):
            return False
        return all(_equal(x, y) for x, y in zip(a, b))

    # bool is a subclass of int
    if isinstance(a, bool) != isinstance(b, bool):
        return False

    return a == b
