"""In-memory query node with deterministic deferred execution.

A ``MockQuery`` is one position in the mock document tree and doubles as a
query builder. Builder calls (``where``, ``order_by``, ``limit``,
``start_after``) never change the node they are called on; each returns a
clone carrying the extra constraint. Reads are queued on a flush queue that
every node of the tree shares, and only resolve when that queue is flushed::

    root = MockQuery(data={"users": {"a": {"n": 1}, "b": {"n": 2}}})
    users = root.collection("users")

    future = users.order_by("n", "desc").limit(1).get()
    users.flush()
    snapshot = await future
    assert [doc.id for doc in snapshot] == ["b"]

Call ``auto_flush()`` to have every read flush as soon as it is queued.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from firemock.kernel.config.models import FlushDelay
from firemock.kernel.exceptions import QueryUsageError, ValidationError
from firemock.kernel.logging import get_logger
from firemock.kernel.ports.scheduler import FlushEvent, SourceMetadata, SupportsFlushQueue
from firemock.stdlib.cursor import CursorBuilder, StartAfterCursor, unbounded_cursor
from firemock.stdlib.document import MockDocumentReference, as_exception
from firemock.stdlib.field_path import array_contains, get_field, sort_key, values_equal
from firemock.stdlib.flush_queue import FlushQueue
from firemock.stdlib.normalization import clean_data
from firemock.stdlib.paths import DEFAULT_ROOT_PATH, extract_name, join_path
from firemock.stdlib.snapshots import DocumentSnapshot, QuerySnapshot

logger = get_logger(__name__)

SUPPORTED_OPERATORS = frozenset({"==", "array-contains"})

_DIRECTIONS = {"asc": "asc", "ascending": "asc", "desc": "desc", "descending": "desc"}


@dataclass(slots=True)
class TreeState:
    """State shared by reference between every node of one tree."""

    queue: SupportsFlushQueue = field(default_factory=FlushQueue)
    flush_delay: FlushDelay = False


def _coerce_delay(delay: Any) -> FlushDelay:
    if isinstance(delay, bool):
        return delay
    if isinstance(delay, int | float):
        if delay < 0:
            raise ValidationError("delay", "must not be negative", delay)
        return float(delay)
    raise ValidationError("delay", "must be a boolean or a number of seconds", delay)


def _same_delay(left: FlushDelay, right: FlushDelay) -> bool:
    # False == 0 in Python; a disabled flush is not a zero-second flush
    return type(left) is type(right) and left == right


def _retrieve_exception(future: asyncio.Future[Any]) -> None:
    # Marks the exception as retrieved; the iterator still re-raises it on await
    if not future.cancelled():
        future.exception()


class MockQuery:
    """A reference node: collection or scoped query over the mock tree.

    Attributes
    ----------
    path : str
        Location of the node, used for display and id derivation.
    id : str | None
        Name within the parent, or the trailing path segment for roots.
    data : dict[str, Any]
        Documents keyed by document id.
    parent : MockQuery | None
        Owning node, ``None`` for a root.
    children : dict[str, MockQuery]
        Collections created through ``collection()``.
    errs : dict[str, Any]
        One-shot injected failures keyed by method name.
    ordered_properties, ordered_directions : list[str]
        Sort keys and their parallel directions.
    limited : int
        Maximum result size; ``<= 0`` means unlimited.
    cursor_builder : CursorBuilder
        Builds a fresh cursor for every query execution.
    """

    def __init__(
        self,
        path: str | None = None,
        data: Any = None,
        parent: MockQuery | None = None,
        name: str | None = None,
        *,
        queue: SupportsFlushQueue | None = None,
    ) -> None:
        self.errs: dict[str, Any] = {}
        self.path = path or DEFAULT_ROOT_PATH
        self.id = name if parent is not None else extract_name(path)
        self.parent = parent
        if parent is not None:
            self._state = parent._state
        else:
            self._state = TreeState(queue=queue) if queue is not None else TreeState()
        self.children: dict[str, MockQuery] = {}
        self.ordered_properties: list[str] = []
        self.ordered_directions: list[str] = []
        self.limited = 0
        self.cursor_builder: CursorBuilder = unbounded_cursor
        self.data: dict[str, Any] = {}
        self.set_data(data)

    # ------------------------------------------------------------------
    # Data boundary
    # ------------------------------------------------------------------

    def set_data(self, data: Any) -> None:
        """Replace stored documents with a normalized deep copy of *data*."""
        cleaned = clean_data(copy.deepcopy(data))
        if cleaned is None:
            cleaned = {}
        if not isinstance(cleaned, dict):
            raise ValidationError(
                "data", "must be a mapping of document id to document", type(data).__name__
            )
        self.data = cleaned

    def get_data(self) -> dict[str, Any]:
        """Return a deep copy of the stored documents."""
        return copy.deepcopy(self.data)

    # ------------------------------------------------------------------
    # Deferred execution
    # ------------------------------------------------------------------

    @property
    def queue(self) -> SupportsFlushQueue:
        return self._state.queue

    @property
    def flush_delay(self) -> FlushDelay:
        return self._state.flush_delay

    @flush_delay.setter
    def flush_delay(self, delay: FlushDelay) -> None:
        self._state.flush_delay = delay

    def flush(self, delay: FlushDelay = False) -> MockQuery:
        """Run every pending operation of the tree, optionally after *delay* seconds."""
        self.queue.flush(delay)
        return self

    def auto_flush(self, delay: FlushDelay = True) -> MockQuery:
        """Flush automatically after every deferred operation.

        The new setting spreads to children and to the parent. Propagation
        only happens when the setting actually changes, which is what stops
        the walk from bouncing between parent and children forever.
        """
        delay = _coerce_delay(delay)
        if not _same_delay(self.flush_delay, delay):
            self.flush_delay = delay
            logger.debug("auto_flush={delay} on {path}", delay=delay, path=self.path)
            for child in list(self.children.values()):
                child.auto_flush(delay)
            if self.parent is not None:
                self.parent.auto_flush(delay)
        return self

    def get_flush_queue(self) -> list[SourceMetadata]:
        """Describe pending operations (``ref``, ``method``, ``args``) in FIFO order."""
        return [event.metadata for event in self.queue.get_events()]

    def fail_next(self, method: str, err: Any) -> MockQuery:
        """Make the next *method* call on this node fail with *err*."""
        self.errs[method] = err
        return self

    def _next_err(self, method: str) -> Any:
        return self.errs.pop(method, None)

    def _defer(
        self,
        method: str,
        args: tuple[Any, ...],
        callback: Any,
        ref: MockQuery | MockDocumentReference | None = None,
    ) -> None:
        """Queue *callback* on the shared queue, recorded against *ref*.

        *ref* defaults to this node; document references pass themselves so
        ``get_flush_queue`` reports the document rather than its collection.
        """
        ref = self if ref is None else ref
        self.queue.push(
            FlushEvent(
                callback=callback,
                context=ref,
                metadata=SourceMetadata(ref=ref, method=method, args=tuple(args)),
            )
        )
        logger.debug("Deferred {method} on {path}", method=method, path=ref.path)
        if self.flush_delay is not False:
            self.flush(self.flush_delay)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self) -> asyncio.Future[QuerySnapshot]:
        """Queue the query and return a future for its ``QuerySnapshot``.

        Must be called with a running event loop. The future resolves when
        the queue is flushed, or fails with an error injected through
        ``fail_next("get", ...)``.
        """
        err = self._next_err("get")
        future: asyncio.Future[QuerySnapshot] = asyncio.get_running_loop().create_future()

        def run() -> None:
            if future.done():
                return
            if err is not None:
                future.set_exception(as_exception(err))
            else:
                future.set_result(self._execute())

        self._defer("get", (), run)
        return future

    def stream(self) -> AsyncIterator[DocumentSnapshot]:
        """Queue the query and yield each resulting document in order.

        The read is queued immediately. A failed read is raised from the
        iterator; if the iterator is dropped without being consumed, the
        failure is discarded instead of reported by the event loop as never
        retrieved.
        """
        future = self.get()
        future.add_done_callback(_retrieve_exception)

        async def iterate() -> AsyncIterator[DocumentSnapshot]:
            snapshot = await future
            for doc in snapshot:
                yield doc

        return iterate()

    def _execute(self) -> QuerySnapshot:
        results: dict[str, Any] = {}
        if self.data:
            cursor = self.cursor_builder()
            for key, document in self._ordered_documents():
                if 0 < self.limited <= len(results):
                    break
                if cursor.matches(key):
                    results[key] = copy.deepcopy(document)
        return QuerySnapshot(self._collection_ref(), results)

    def _ordered_documents(self) -> Iterator[tuple[str, Any]]:
        items = list(self.data.items())
        # Stable sorts from the last key to the first give left-to-right tie-breaking
        for prop, direction in reversed(
            list(zip(self.ordered_properties, self.ordered_directions, strict=True))
        ):
            items.sort(
                key=lambda item, prop=prop: sort_key(get_field(item[1], prop)),
                reverse=direction == "desc",
            )
        return iter(items)

    def _collection_ref(self) -> MockQuery:
        if self.parent is None:
            return self
        return self.parent.collection(self.id)

    # ------------------------------------------------------------------
    # Query builders
    # ------------------------------------------------------------------

    def where(self, field_path: str, op_string: str, value: Any) -> MockQuery:
        """Filter on ``==`` or ``array-contains``.

        Any other operator keeps the full data set and logs a warning.
        """
        query = self.clone()
        if op_string not in SUPPORTED_OPERATORS:
            logger.warning(
                "Unsupported where() operator {op!r} on {path}, returning the entire data set",
                op=op_string,
                path=self.path,
            )
            return query

        matched = {}
        for key, document in self.data.items():
            field_value = get_field(document, field_path)
            if op_string == "==":
                keep = values_equal(field_value, value)
            else:
                keep = array_contains(field_value, value)
            if keep:
                matched[key] = document
        query.set_data(matched)
        return query

    def order_by(self, field_path: str, direction: str = "asc") -> MockQuery:
        """Append a sort key; ties fall through to later keys."""
        normalized = _DIRECTIONS.get(str(direction).lower())
        if normalized is None:
            raise ValidationError("direction", "must be 'asc' or 'desc'", direction)
        query = self.clone()
        query.ordered_properties.append(field_path)
        query.ordered_directions.append(normalized)
        return query

    def limit(self, count: int) -> MockQuery:
        """Cap the number of results; ``count <= 0`` removes the cap."""
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValidationError("count", "must be an integer", count)
        query = self.clone()
        query.limited = count
        return query

    def start_after(self, snapshot: DocumentSnapshot) -> MockQuery:
        """Only return documents that sort after *snapshot*.

        Raises
        ------
        QueryUsageError
            If the query has no ``order_by`` clause
        """
        if not self.ordered_properties:
            raise QueryUsageError("start_after", "query must be ordered to paginate")
        if not isinstance(snapshot, DocumentSnapshot):
            logger.warning(
                "Unsupported start_after() argument {arg!r} on {path}, returning the same query",
                arg=type(snapshot).__name__,
                path=self.path,
            )
            return self

        query = self.clone()
        query.cursor_builder = partial(StartAfterCursor, snapshot.ref.id)
        return query

    def clone(self) -> MockQuery:
        """Copy this node, its data snapshot and its query configuration."""
        query = MockQuery(self.path, self.get_data(), self.parent, self.id)
        query._state = self._state
        query.id = self.id
        query.ordered_properties = list(self.ordered_properties)
        query.ordered_directions = list(self.ordered_directions)
        query.limited = self.limited
        query.cursor_builder = self.cursor_builder
        return query

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def collection(self, name: str) -> MockQuery:
        """Return the child collection *name*, creating it on first use."""
        child = self.children.get(name)
        if child is None:
            child = MockQuery(join_path(self.path, name), self.data.get(name), self, name)
            self.children[name] = child
        return child

    def doc(self, doc_id: str) -> MockDocumentReference:
        """Return a reference to document *doc_id* in this collection."""
        return MockDocumentReference(self, doc_id)

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return f"MockQuery({self.path!r})"
