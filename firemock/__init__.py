"""firemock — deterministic in-memory stand-in for a document-collection query API.

Reads are queued and only complete when the tree is flushed, so tests
decide exactly when asynchronous results arrive::

    from firemock import mock_firestore

    db = mock_firestore({"users": {"alice": {"age": 31}}})
    future = db.collection("users").where("age", "==", 31).get()
    db.flush()
    snapshot = await future
"""

from typing import Any

try:
    from importlib.metadata import version

    __version__ = version("firemock")
except Exception:
    __version__ = "0.0.0.dev0"  # Fallback for development installs

from firemock.kernel.config import FiremockConfig, load_config
from firemock.kernel.exceptions import (
    ConfigurationError,
    FiremockError,
    InjectedError,
    QueryUsageError,
    ValidationError,
)
from firemock.kernel.logging import configure_logging
from firemock.stdlib import (
    DELETE_FIELD,
    DocumentSnapshot,
    FlushQueue,
    MockDocumentReference,
    MockQuery,
    QuerySnapshot,
)


def mock_firestore(data: Any = None, *, config: FiremockConfig | None = None) -> MockQuery:
    """Build a root node over *data* using the loaded (or given) configuration."""
    config = config or load_config()
    configure_logging(
        level=config.logging.level,
        format=config.logging.format,
        output_file=config.logging.output_file,
        use_color=config.logging.use_color,
        include_timestamp=config.logging.include_timestamp,
        use_rich=config.logging.use_rich,
        enable_stdlib_bridge=config.logging.stdlib_bridge,
    )
    root = MockQuery(config.root_path, data)
    if config.auto_flush is not False:
        root.auto_flush(config.auto_flush)
    return root


__all__ = [
    "DELETE_FIELD",
    "ConfigurationError",
    "DocumentSnapshot",
    "FiremockConfig",
    "FiremockError",
    "FlushQueue",
    "InjectedError",
    "MockDocumentReference",
    "MockQuery",
    "QuerySnapshot",
    "QueryUsageError",
    "ValidationError",
    "mock_firestore",
]
