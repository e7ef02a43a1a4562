"""Snapshot objects handed back by completed reads."""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

from firemock.stdlib.field_path import MISSING, get_field

if TYPE_CHECKING:
    from firemock.stdlib.document import MockDocumentReference
    from firemock.stdlib.query import MockQuery


class DocumentSnapshot:
    """Immutable view of one document at read time.

    ``data`` is deep-copied on the way in and on the way out, so callers can
    mutate what they receive without touching stored state.
    """

    def __init__(self, doc_id: str, ref: MockDocumentReference, data: Any = None) -> None:
        self.id = doc_id
        self.ref = ref
        self._data = copy.deepcopy(data)

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        """Return a deep copy of the document, or ``None`` if it does not exist."""
        return copy.deepcopy(self._data)

    def get(self, field_path: str) -> Any:
        """Return the value at a dotted *field_path*, or ``None`` when absent."""
        if self._data is None:
            return None
        value = get_field(self._data, field_path)
        return None if value is MISSING else copy.deepcopy(value)

    def __repr__(self) -> str:
        return f"DocumentSnapshot(id={self.id!r}, exists={self.exists})"


class QuerySnapshot:
    """Ordered result of a query, addressed by its collection reference."""

    def __init__(self, query: MockQuery, data: dict[str, Any] | None = None) -> None:
        self.query = query
        self.docs: list[DocumentSnapshot] = [
            DocumentSnapshot(key, query.doc(key), value) for key, value in (data or {}).items()
        ]

    @property
    def size(self) -> int:
        return len(self.docs)

    @property
    def empty(self) -> bool:
        return not self.docs

    def for_each(self, callback: Callable[[DocumentSnapshot], Any]) -> None:
        for doc in self.docs:
            callback(doc)

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        return iter(self.docs)

    def __len__(self) -> int:
        return len(self.docs)

    def __repr__(self) -> str:
        return f"QuerySnapshot(query={str(self.query)!r}, size={self.size})"
