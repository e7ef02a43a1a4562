"""Pagination cursors evaluated once per query execution."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True)
class StartAfterCursor:
    """Scan state for ``start_after``.

    ``matches`` returns ``False`` up to and including the document whose key
    equals ``target_key`` and ``True`` for every document after it. A
    cursor without a target is in range from the first document.
    """

    target_key: str | None = None
    started: bool = False

    def __post_init__(self) -> None:
        if self.target_key is None:
            self.started = True

    def matches(self, key: str) -> bool:
        if self.started:
            return True
        self.started = key == self.target_key
        return False


CursorBuilder = Callable[[], StartAfterCursor]


def unbounded_cursor() -> StartAfterCursor:
    """Cursor that includes every document."""
    return StartAfterCursor()
