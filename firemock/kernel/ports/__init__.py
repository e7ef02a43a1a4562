"""Port interfaces consumed by firemock nodes."""

from firemock.kernel.ports.scheduler import FlushEvent, SourceMetadata, SupportsFlushQueue

__all__ = ["FlushEvent", "SourceMetadata", "SupportsFlushQueue"]
