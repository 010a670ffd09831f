"""MongoDocumentStore — ETag-conditioned document store over Motor."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any

from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from ..exceptions import (
    DocumentStoreError,
    EtagMismatchError,
    RecordExistsError,
    RecordNotFoundError,
    StoreTransportError,
)
from ..records import StoredDocument
from ..settings import CollectionConfig
from .memory import quoted_uuid_etag

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping

    from ..connection import MongoConnectionManager

logger = logging.getLogger("etag_concurrency.stores.mongo")


@contextlib.contextmanager
def _translate_errors(operation: str, collection: str) -> Iterator[None]:
    try:
        yield
    except ConnectionFailure as exc:
        logger.warning(
            "MongoDB unreachable during %s on %s: %s", operation, collection, exc
        )
        raise StoreTransportError(f"{operation} on {collection}: {exc}") from exc
    except DuplicateKeyError:
        raise
    except PyMongoError as exc:
        raise DocumentStoreError(f"{operation} on {collection}: {exc}") from exc


class MongoDocumentStore:
    """``IDocumentStore`` over MongoDB.

    The record key is the document ``_id`` and must be unique per
    collection.  For partitioned collections the partition key value is
    kept in ``partition_key_field`` and added to every filter.  Every write
    replaces the whole document and stamps a fresh ETag; the conditional
    write is a single ``replace_one`` whose filter includes the expected
    ETag, so MongoDB performs the compare-and-swap atomically.
    """

    def __init__(
        self,
        connection: MongoConnectionManager,
        collections: Iterable[CollectionConfig] = (),
        *,
        database: str | None = None,
        etag_factory: Callable[[], str] = quoted_uuid_etag,
    ) -> None:
        self._connection = connection
        self._configs: dict[str, CollectionConfig] = {c.name: c for c in collections}
        self._database = database
        self._etag_factory = etag_factory

    def collection_config(self, collection: str) -> CollectionConfig:
        config = self._configs.get(collection)
        if config is None:
            config = CollectionConfig(name=collection)
            self._configs[collection] = config
        return config

    def _collection(self, collection: str) -> Any:
        database = self._connection.get_database(self._database)
        return database.get_collection(collection)

    async def create(
        self,
        collection: str,
        key: str,
        values: Mapping[str, Any],
        partition_key: Any = None,
    ) -> StoredDocument:
        config = self.collection_config(collection)
        doc = self._build(config, key, values, partition_key)
        try:
            with _translate_errors("create", collection):
                await self._collection(collection).insert_one(doc)
        except DuplicateKeyError as exc:
            raise RecordExistsError(collection, key) from exc
        return self._to_stored(config, partition_key, doc)

    async def read(
        self, collection: str, key: str, partition_key: Any = None
    ) -> StoredDocument:
        config = self.collection_config(collection)
        with _translate_errors("read", collection):
            doc = await self._collection(collection).find_one(
                self._filter(config, key, partition_key)
            )
        if doc is None:
            raise RecordNotFoundError(collection, key, partition_key)
        return self._to_stored(config, partition_key, doc)

    async def conditional_write(
        self,
        collection: str,
        key: str,
        values: Mapping[str, Any],
        expected_etag: str | None,
        partition_key: Any = None,
    ) -> str:
        config = self.collection_config(collection)
        coll = self._collection(collection)
        flt = self._filter(config, key, partition_key)
        if expected_etag is not None:
            flt[config.etag_field] = expected_etag
        doc = self._build(config, key, values, partition_key)

        existing: Mapping[str, Any] | None = None
        with _translate_errors("conditional_write", collection):
            result = await coll.replace_one(flt, doc, upsert=False)
            if result.matched_count == 0:
                # Either the key is gone or another writer got there first
                existing = await coll.find_one(
                    self._filter(config, key, partition_key)
                )
        if result.matched_count == 0:
            if existing is None:
                raise RecordNotFoundError(collection, key, partition_key)
            raise EtagMismatchError(
                collection, key, expected_etag, existing.get(config.etag_field)
            )
        return str(doc[config.etag_field])

    async def query(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None = None,
        partition_key: Any = None,
    ) -> list[StoredDocument]:
        """Equality match on every ``criteria`` field, ordered by key."""
        config = self.collection_config(collection)
        flt: dict[str, Any] = dict(criteria or {})
        if config.partition_key_field and partition_key is not None:
            flt[config.partition_key_field] = partition_key
        with _translate_errors("query", collection):
            cursor = self._collection(collection).find(flt).sort("_id", 1)
            return [
                self._to_stored(config, partition_key, doc) async for doc in cursor
            ]

    async def delete(
        self, collection: str, key: str, partition_key: Any = None
    ) -> None:
        config = self.collection_config(collection)
        with _translate_errors("delete", collection):
            result = await self._collection(collection).delete_one(
                self._filter(config, key, partition_key)
            )
        if result.deleted_count == 0:
            raise RecordNotFoundError(collection, key, partition_key)

    # ── internals ────────────────────────────────────────────────

    @staticmethod
    def _filter(
        config: CollectionConfig, key: str, partition_key: Any
    ) -> dict[str, Any]:
        flt: dict[str, Any] = {"_id": key}
        if config.partition_key_field and partition_key is not None:
            flt[config.partition_key_field] = partition_key
        return flt

    def _build(
        self,
        config: CollectionConfig,
        key: str,
        values: Mapping[str, Any],
        partition_key: Any,
    ) -> dict[str, Any]:
        doc: dict[str, Any] = {"_id": key}
        doc.update((k, v) for k, v in values.items() if k != "_id")
        if config.partition_key_field and partition_key is not None:
            doc[config.partition_key_field] = partition_key
        doc[config.etag_field] = self._etag_factory()
        return doc

    @staticmethod
    def _to_stored(
        config: CollectionConfig, partition_key: Any, doc: Mapping[str, Any]
    ) -> StoredDocument:
        values = {
            k: v for k, v in doc.items() if k not in ("_id", config.etag_field)
        }
        if partition_key is None and config.partition_key_field:
            partition_key = doc.get(config.partition_key_field)
        return StoredDocument(
            key=str(doc["_id"]),
            partition_key=partition_key,
            values=values,
            etag=str(doc[config.etag_field]),
        )
