"""IDocumentStore — the document-store client contract the resolver requires."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .records import StoredDocument
    from .settings import CollectionConfig


@runtime_checkable
class IDocumentStore(Protocol):
    """
    Point reads, conditional writes and filtered queries on named collections.

    Every call is scoped by an optional partition key value.  Writes replace
    the whole document and issue a fresh ETag::

        doc = await store.read("Address", "Address-1", partition_key="Utah")
        new_etag = await store.conditional_write(
            "Address",
            "Address-1",
            {**doc.values, "Street": "Pluralsight Avenue"},
            expected_etag=doc.etag,
            partition_key="Utah",
        )

    ``conditional_write`` raises ``EtagMismatchError`` when the stored ETag is
    not ``expected_etag``, ``RecordNotFoundError`` when the key is absent and
    ``StoreTransportError`` when the store is unreachable.  Passing
    ``expected_etag=None`` skips the ETag check.
    """

    def collection_config(self, collection: str) -> CollectionConfig: ...

    async def create(
        self,
        collection: str,
        key: str,
        values: Mapping[str, Any],
        partition_key: Any = None,
    ) -> StoredDocument: ...

    async def read(
        self, collection: str, key: str, partition_key: Any = None
    ) -> StoredDocument: ...

    async def conditional_write(
        self,
        collection: str,
        key: str,
        values: Mapping[str, Any],
        expected_etag: str | None,
        partition_key: Any = None,
    ) -> str: ...

    async def query(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None = None,
        partition_key: Any = None,
    ) -> list[StoredDocument]: ...

    async def delete(
        self, collection: str, key: str, partition_key: Any = None
    ) -> None: ...
