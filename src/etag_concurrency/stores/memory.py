"""InMemoryDocumentStore — dict-backed document store for tests and demos."""

from __future__ import annotations

import asyncio
import uuid
from copy import deepcopy
from typing import TYPE_CHECKING, Any

from ..exceptions import EtagMismatchError, RecordExistsError, RecordNotFoundError
from ..records import StoredDocument
from ..settings import CollectionConfig

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping


def quoted_uuid_etag() -> str:
    """ETag in the quoted-GUID shape document databases hand out."""
    return f'"{uuid.uuid4()}"'


class InMemoryDocumentStore:
    """In-memory implementation of ``IDocumentStore``.

    Documents live in ``{collection: {(partition_key, key): document}}``;
    each stored document carries its ETag under the collection's
    ``etag_field``.  A single ``asyncio.Lock`` makes every conditional write
    an atomic compare-and-swap.
    """

    def __init__(
        self,
        collections: Iterable[CollectionConfig] = (),
        *,
        etag_factory: Callable[[], str] = quoted_uuid_etag,
    ) -> None:
        self._configs: dict[str, CollectionConfig] = {c.name: c for c in collections}
        self._etag_factory = etag_factory
        self._data: dict[str, dict[tuple[Any, str], dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def register_collection(self, config: CollectionConfig) -> None:
        self._configs[config.name] = config

    def collection_config(self, collection: str) -> CollectionConfig:
        config = self._configs.get(collection)
        if config is None:
            config = CollectionConfig(name=collection)
            self._configs[collection] = config
        return config

    async def create(
        self,
        collection: str,
        key: str,
        values: Mapping[str, Any],
        partition_key: Any = None,
    ) -> StoredDocument:
        config = self.collection_config(collection)
        async with self._lock:
            docs = self._data.setdefault(collection, {})
            if (partition_key, key) in docs:
                raise RecordExistsError(collection, key)
            doc = self._build(config, values, partition_key)
            docs[(partition_key, key)] = doc
            return self._to_stored(config, key, partition_key, doc)

    async def read(
        self, collection: str, key: str, partition_key: Any = None
    ) -> StoredDocument:
        config = self.collection_config(collection)
        doc = self._data.get(collection, {}).get((partition_key, key))
        if doc is None:
            raise RecordNotFoundError(collection, key, partition_key)
        return self._to_stored(config, key, partition_key, doc)

    async def conditional_write(
        self,
        collection: str,
        key: str,
        values: Mapping[str, Any],
        expected_etag: str | None,
        partition_key: Any = None,
    ) -> str:
        config = self.collection_config(collection)
        async with self._lock:
            docs = self._data.get(collection, {})
            existing = docs.get((partition_key, key))
            if existing is None:
                raise RecordNotFoundError(collection, key, partition_key)
            stored_etag = existing[config.etag_field]
            if expected_etag is not None and stored_etag != expected_etag:
                raise EtagMismatchError(collection, key, expected_etag, stored_etag)
            doc = self._build(config, values, partition_key)
            docs[(partition_key, key)] = doc
            return str(doc[config.etag_field])

    async def query(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None = None,
        partition_key: Any = None,
    ) -> list[StoredDocument]:
        """Equality match on every ``criteria`` field, ordered by key."""
        config = self.collection_config(collection)
        criteria = criteria or {}
        results = []
        for (pk, key), doc in sorted(
            self._data.get(collection, {}).items(), key=lambda item: item[0][1]
        ):
            if partition_key is not None and pk != partition_key:
                continue
            if all(
                name in doc and doc[name] == value
                for name, value in criteria.items()
            ):
                results.append(self._to_stored(config, key, pk, doc))
        return results

    async def delete(
        self, collection: str, key: str, partition_key: Any = None
    ) -> None:
        async with self._lock:
            docs = self._data.get(collection, {})
            if docs.pop((partition_key, key), None) is None:
                raise RecordNotFoundError(collection, key, partition_key)

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return sum(len(docs) for docs in self._data.values())

    # ── internals ────────────────────────────────────────────────

    def _build(
        self, config: CollectionConfig, values: Mapping[str, Any], partition_key: Any
    ) -> dict[str, Any]:
        doc = deepcopy(dict(values))
        if config.partition_key_field and partition_key is not None:
            doc[config.partition_key_field] = partition_key
        doc[config.etag_field] = self._etag_factory()
        return doc

    @staticmethod
    def _to_stored(
        config: CollectionConfig, key: str, partition_key: Any, doc: dict[str, Any]
    ) -> StoredDocument:
        values = {k: deepcopy(v) for k, v in doc.items() if k != config.etag_field}
        return StoredDocument(
            key=key,
            partition_key=partition_key,
            values=values,
            etag=doc[config.etag_field],
        )
