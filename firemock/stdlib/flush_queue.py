"""FIFO flush queue shared by every node of a reference tree.

Deferred operations sit here until the queue is flushed, which gives tests
full control over when asynchronous results become available::

    queue = FlushQueue()
    queue.push(FlushEvent(callback, context=None, metadata=SourceMetadata(ref, "get")))
    queue.flush()  # runs callback now
    queue.flush(0.05)  # runs whatever is pending 50ms later on the running loop
"""

from __future__ import annotations

import asyncio
from collections import deque

from firemock.kernel.exceptions import ValidationError
from firemock.kernel.logging import get_logger
from firemock.kernel.ports.scheduler import FlushEvent

logger = get_logger(__name__)


class FlushQueue:
    """In-memory ``SupportsFlushQueue`` implementation."""

    def __init__(self) -> None:
        self._events: deque[FlushEvent] = deque()

    def __len__(self) -> int:
        return len(self._events)

    def push(self, event: FlushEvent) -> None:
        """Append a deferred event."""
        self._events.append(event)

    def get_events(self) -> list[FlushEvent]:
        """Return a copy of the pending events in FIFO order."""
        return list(self._events)

    def flush(self, delay: bool | float = False) -> None:
        """Run all pending events.

        Args
        ----
            delay: ``False``, ``True`` or ``0`` drain synchronously. A
                positive number of seconds schedules the drain on the running
                event loop; without a running loop the drain happens now.

        Raises
        ------
        ValidationError
            If *delay* is a negative number
        """
        if isinstance(delay, bool) or delay == 0:
            self._drain()
            return
        if delay < 0:
            raise ValidationError("delay", "must not be negative", delay)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, flushing immediately instead of after {}s", delay)
            self._drain()
            return
        loop.call_later(delay, self._drain)

    def _drain(self) -> None:
        # Events pushed by a running callback are drained in the same pass
        count = 0
        while self._events:
            event = self._events.popleft()
            event.run()
            count += 1
        if count:
            logger.debug("Flushed {count} deferred operation(s)", count=count)
