"""Collection layout and reconcile settings."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ETAG_FIELD = "_etag"


class CollectionConfig(BaseModel):
    """How documents of one collection are laid out in the store.

    ``etag_field`` is the property carrying the version tag; the default is
    the system ``_etag`` property, a custom one (e.g. ``"CustomETag"``) can be
    mapped instead.  ``partition_key_field`` names the document property
    whose value scopes point reads and writes; ``None`` means the collection
    is not partitioned.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    etag_field: str = Field(default=DEFAULT_ETAG_FIELD, min_length=1)
    partition_key_field: str | None = None

    @field_validator("partition_key_field")
    @classmethod
    def _partition_field_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("partition_key_field must not be blank")
        return value


class ReconcileSettings(BaseModel):
    """Defaults for ``ConflictResolver.reconcile`` callers."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=10, ge=1)
    call_timeout: float | None = Field(default=None, gt=0)
    policy: str = "abort"
    ignored_fields: frozenset[str] = frozenset()
