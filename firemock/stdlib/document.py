"""Document references handed out by ``MockQuery.doc``."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from firemock.kernel.exceptions import InjectedError
from firemock.stdlib.paths import join_path
from firemock.stdlib.snapshots import DocumentSnapshot

if TYPE_CHECKING:
    from firemock.stdlib.query import MockQuery


def as_exception(err: Any) -> BaseException:
    """Turn an injected failure value into something a future can raise."""
    if isinstance(err, BaseException):
        return err
    if isinstance(err, type) and issubclass(err, BaseException):
        return err()
    return InjectedError(err)


class MockDocumentReference:
    """Reference to a single document inside a collection node.

    Reads go through the collection's flush queue and observe the
    collection's data as of flush time.
    """

    def __init__(self, parent: MockQuery, doc_id: str) -> None:
        self.parent = parent
        self.id = doc_id
        self.path = join_path(parent.path, doc_id)
        self.errs: dict[str, Any] = {}

    def fail_next(self, method: str, err: Any) -> MockDocumentReference:
        """Make the next *method* call fail with *err*."""
        self.errs[method] = err
        return self

    def get(self) -> asyncio.Future[DocumentSnapshot]:
        """Read the document once the queue is flushed."""
        err = self.errs.pop("get", None)
        future: asyncio.Future[DocumentSnapshot] = asyncio.get_running_loop().create_future()

        def run() -> None:
            if future.done():
                return
            if err is not None:
                future.set_exception(as_exception(err))
            else:
                future.set_result(DocumentSnapshot(self.id, self, self.parent.data.get(self.id)))

        self.parent._defer("get", (), run, ref=self)
        return future

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MockDocumentReference):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return f"MockDocumentReference({self.path!r})"
