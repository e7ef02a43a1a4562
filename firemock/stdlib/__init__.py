"""Concrete mock components: query nodes, snapshots and the flush queue."""

from firemock.stdlib.cursor import StartAfterCursor
from firemock.stdlib.document import MockDocumentReference
from firemock.stdlib.flush_queue import FlushQueue
from firemock.stdlib.normalization import DELETE_FIELD, clean_data
from firemock.stdlib.query import MockQuery
from firemock.stdlib.snapshots import DocumentSnapshot, QuerySnapshot

__all__ = [
    "DELETE_FIELD",
    "DocumentSnapshot",
    "FlushQueue",
    "MockDocumentReference",
    "MockQuery",
    "QuerySnapshot",
    "StartAfterCursor",
    "clean_data",
]
