"""Normalization applied to every document tree written into a node."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class _DeleteField:
    """Sentinel marking a field for removal on write."""

    _instance: _DeleteField | None = None

    def __new__(cls) -> _DeleteField:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"

    def __deepcopy__(self, memo: dict[int, Any]) -> _DeleteField:
        return self


DELETE_FIELD = _DeleteField()


def clean_data(data: Any) -> Any:
    """Return a normalized copy of *data*.

    Mappings become plain dicts with string keys, tuples become lists and
    ``DELETE_FIELD`` values are dropped. Scalars are returned unchanged.
    The function is pure and idempotent.

    Examples
    --------
    >>> clean_data({"a": (1, 2), "b": DELETE_FIELD, 3: {"c": None}})
    {'a': [1, 2], '3': {'c': None}}
    >>> clean_data(None) is None
    True
    """
    if isinstance(data, Mapping):
        return {
            str(key): clean_data(value) for key, value in data.items() if value is not DELETE_FIELD
        }
    if isinstance(data, list | tuple):
        return [clean_data(item) for item in data if item is not DELETE_FIELD]
    return data
