"""Scheduler port — the queue deferred operations are pushed onto.

A single scheduler is shared by a whole reference tree. Query nodes only
depend on this protocol, so tests can substitute their own queue.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class SourceMetadata:
    """Describes the operation that produced a deferred event."""

    ref: Any
    method: str
    args: tuple[Any, ...] = ()


@dataclass(slots=True)
class FlushEvent:
    """A pending operation waiting for the next flush."""

    callback: Callable[[], None]
    context: Any
    metadata: SourceMetadata
    ran: bool = field(default=False, init=False)

    def run(self) -> None:
        """Invoke the callback. An event runs at most once."""
        if self.ran:
            return
        self.ran = True
        self.callback()


@runtime_checkable
class SupportsFlushQueue(Protocol):
    """FIFO queue of deferred operations."""

    @abstractmethod
    def push(self, event: FlushEvent) -> None:
        """Append *event* to the pending queue."""
        ...

    @abstractmethod
    def flush(self, delay: bool | float = False) -> None:
        """Run pending events, optionally after *delay* seconds."""
        ...

    @abstractmethod
    def get_events(self) -> list[FlushEvent]:
        """Return pending events in FIFO order."""
        ...
