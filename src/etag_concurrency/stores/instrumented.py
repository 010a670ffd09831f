"""InstrumentedDocumentStore — runs registered hooks around every store call."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from ..instrumentation import get_hook_registry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from ..instrumentation import HookRegistry
    from ..ports import IDocumentStore
    from ..records import StoredDocument
    from ..settings import CollectionConfig

_log = logging.getLogger("etag_concurrency.diagnostics")


class InstrumentedDocumentStore:
    """Decorates an ``IDocumentStore`` with instrumentation hooks.

    Each call is executed through ``HookRegistry.execute_all`` under the
    operation name ``docstore.<method>`` with ``collection``, ``key`` and
    ``partition_key`` attributes.  With no registry given, the context's
    registry is looked up on every call.
    """

    def __init__(
        self, inner: IDocumentStore, registry: HookRegistry | None = None
    ) -> None:
        self._inner = inner
        self._registry = registry

    @property
    def inner(self) -> IDocumentStore:
        return self._inner

    def collection_config(self, collection: str) -> CollectionConfig:
        return self._inner.collection_config(collection)

    async def _run(
        self,
        method: str,
        attributes: dict[str, Any],
        call: Callable[[], Awaitable[Any]],
    ) -> Any:
        registry = self._registry or get_hook_registry()
        return await registry.execute_all(f"docstore.{method}", attributes, call)

    async def create(
        self,
        collection: str,
        key: str,
        values: Mapping[str, Any],
        partition_key: Any = None,
    ) -> StoredDocument:
        return await self._run(
            "create",
            {"collection": collection, "key": key, "partition_key": partition_key},
            lambda: self._inner.create(collection, key, values, partition_key),
        )

    async def read(
        self, collection: str, key: str, partition_key: Any = None
    ) -> StoredDocument:
        return await self._run(
            "read",
            {"collection": collection, "key": key, "partition_key": partition_key},
            lambda: self._inner.read(collection, key, partition_key),
        )

    async def conditional_write(
        self,
        collection: str,
        key: str,
        values: Mapping[str, Any],
        expected_etag: str | None,
        partition_key: Any = None,
    ) -> str:
        return await self._run(
            "conditional_write",
            {
                "collection": collection,
                "key": key,
                "partition_key": partition_key,
                "expected_etag": expected_etag,
            },
            lambda: self._inner.conditional_write(
                collection, key, values, expected_etag, partition_key
            ),
        )

    async def query(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None = None,
        partition_key: Any = None,
    ) -> list[StoredDocument]:
        return await self._run(
            "query",
            {
                "collection": collection,
                "criteria": dict(criteria or {}),
                "partition_key": partition_key,
            },
            lambda: self._inner.query(collection, criteria, partition_key),
        )

    async def delete(
        self, collection: str, key: str, partition_key: Any = None
    ) -> None:
        await self._run(
            "delete",
            {"collection": collection, "key": key, "partition_key": partition_key},
            lambda: self._inner.delete(collection, key, partition_key),
        )


class LoggingHook:
    """Emits one JSON log entry per store call: operation, outcome, duration."""

    def __init__(
        self, logger: logging.Logger | None = None, *, level: int = logging.INFO
    ) -> None:
        self._log = logger or _log
        self._level = level

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        start = time.monotonic()
        outcome = "success"
        try:
            return await next_handler()
        except Exception as exc:  # noqa: BLE001
            outcome = type(exc).__name__
            raise
        finally:
            try:
                entry = {
                    "operation": operation,
                    "collection": attributes.get("collection"),
                    "key": attributes.get("key"),
                    "outcome": outcome,
                    "duration_ms": round((time.monotonic() - start) * 1000, 2),
                }
                self._log.log(self._level, json.dumps(entry, default=str))
            except Exception:  # noqa: BLE001
                _log.debug("Failed to emit store call log entry", exc_info=True)
