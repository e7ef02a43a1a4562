"""Dot-path field access, value equality and cross-type ordering.

Documents are arbitrarily nested mappings. Fields are addressed with dotted
paths (``"address.city"``); numeric segments index into lists
(``"tags.0"``).
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any


class _Missing:
    """Marker for a field path that does not resolve."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

# Value-type order used when sorting heterogeneous fields
_RANK_MISSING = 0
_RANK_NULL = 1
_RANK_BOOLEAN = 2
_RANK_NUMBER = 3
_RANK_TIMESTAMP = 4
_RANK_STRING = 5
_RANK_BYTES = 6
_RANK_OTHER = 7
_RANK_ARRAY = 8
_RANK_MAP = 9


def get_field(document: Any, path: str) -> Any:
    """Resolve *path* inside *document*, returning ``MISSING`` when absent.

    >>> get_field({"a": {"b": [10, 20]}}, "a.b.1")
    20
    >>> get_field({"a": 1}, "a.b")
    MISSING
    """
    current = document
    for segment in str(path).split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif _is_array(current) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return MISSING
    return current


def values_equal(left: Any, right: Any) -> bool:
    """Deep equality that keeps booleans distinct from numbers."""
    if left is MISSING or right is MISSING:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(
            values_equal(left[key], right[key]) for key in left
        )
    if _is_array(left) and _is_array(right):
        return len(left) == len(right) and all(
            values_equal(a, b) for a, b in zip(left, right, strict=True)
        )
    return bool(left == right)


def array_contains(field_value: Any, value: Any) -> bool:
    """True when *field_value* is an array holding an element equal to *value*."""
    if not _is_array(field_value):
        return False
    return any(values_equal(item, value) for item in field_value)


def sort_key(value: Any) -> tuple[Any, ...]:
    """Build a key giving a total order over mixed value types.

    Order: missing < null < boolean < number < timestamp < string < bytes
    < other < array < map.
    """
    if value is MISSING:
        return (_RANK_MISSING,)
    if value is None:
        return (_RANK_NULL,)
    if isinstance(value, bool):
        return (_RANK_BOOLEAN, value)
    if isinstance(value, int | float):
        if isinstance(value, float) and math.isnan(value):
            return (_RANK_NUMBER, 0, 0)
        return (_RANK_NUMBER, 1, value)
    if isinstance(value, datetime):
        return (_RANK_TIMESTAMP, value.timestamp())
    if isinstance(value, date):
        return (_RANK_TIMESTAMP, datetime(value.year, value.month, value.day).timestamp())
    if isinstance(value, str):
        return (_RANK_STRING, value)
    if isinstance(value, bytes | bytearray):
        return (_RANK_BYTES, bytes(value))
    if _is_array(value):
        return (_RANK_ARRAY, tuple(sort_key(item) for item in value))
    if isinstance(value, Mapping):
        return (
            _RANK_MAP,
            tuple((str(key), sort_key(value[key])) for key in sorted(value, key=str)),
        )
    return (_RANK_OTHER, str(value))


def _is_array(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)
