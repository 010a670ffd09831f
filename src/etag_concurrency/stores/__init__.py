"""Document store adapters implementing ``IDocumentStore``."""

from __future__ import annotations

from .instrumented import InstrumentedDocumentStore, LoggingHook
from .memory import InMemoryDocumentStore, quoted_uuid_etag

__all__ = [
    "InMemoryDocumentStore",
    "InstrumentedDocumentStore",
    "LoggingHook",
    "quoted_uuid_etag",
]
