"""Immutable record snapshots passed between callers, the resolver and stores."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Snapshot(BaseModel):
    """Frozen pydantic base; equality is structural."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class StoredDocument(_Snapshot):
    """A document as currently held by the store, with its ETag."""

    key: str
    partition_key: Any = None
    values: dict[str, Any] = Field(default_factory=dict)
    etag: str


class VersionedRecord(_Snapshot):
    """A caller-side copy of a stored document.

    ``values`` holds the proposed field values; ``etag`` is the tag the copy
    was read with (``None`` for records never read from the store).
    """

    collection: str
    key: str
    partition_key: Any = None
    values: dict[str, Any] = Field(default_factory=dict)
    etag: str | None = None

    @classmethod
    def from_document(cls, collection: str, doc: StoredDocument) -> VersionedRecord:
        return cls(
            collection=collection,
            key=doc.key,
            partition_key=doc.partition_key,
            values=dict(doc.values),
            etag=doc.etag,
        )

    def with_values(self, **changes: Any) -> VersionedRecord:
        """Return a copy with ``changes`` applied on top of the current values."""
        return self.model_copy(update={"values": {**self.values, **changes}})

    def with_etag(self, etag: str | None) -> VersionedRecord:
        return self.model_copy(update={"etag": etag})


class SaveAttempt(_Snapshot):
    """The proposed record plus the ETag its save is conditioned on."""

    record: VersionedRecord
    original_etag: str

    @classmethod
    def of(cls, record: VersionedRecord) -> SaveAttempt:
        """Build an attempt conditioned on the ETag the record was read with."""
        if record.etag is None:
            from .exceptions import ValidationError

            raise ValidationError({"etag": ["record was not read from the store"]})
        return cls(record=record, original_etag=record.etag)

    def restamp(self, etag: str) -> SaveAttempt:
        """Move the version baseline to ``etag``; proposed values are kept."""
        return self.model_copy(update={"original_etag": etag})
