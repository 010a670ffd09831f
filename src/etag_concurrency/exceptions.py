"""Domain and infrastructure exceptions for etag-concurrency."""

from __future__ import annotations


class EtagConcurrencyError(Exception):
    """Root exception for the entire etag-concurrency toolkit."""


class ConcurrencyError(EtagConcurrencyError):
    """Base class for all concurrency-related conflicts."""


class EtagMismatchError(ConcurrencyError):
    """Raised by a document store when a conditional write sees a stale ETag.

    The resolver turns this into a ``CONFLICTED`` outcome; callers of the
    resolver never see it.
    """

    def __init__(
        self,
        collection: str,
        key: str,
        expected_etag: str | None,
        actual_etag: str | None = None,
    ) -> None:
        self.collection = collection
        self.key = key
        self.expected_etag = expected_etag
        self.actual_etag = actual_etag

        msg = (
            f"ETag mismatch on {collection}:{key}: "
            f"expected {expected_etag!r}"
        )
        if actual_etag is not None:
            msg += f", stored {actual_etag!r}"

        super().__init__(msg)


class DeadlineExceededError(ConcurrencyError):
    """Raised when a single store call exceeds its deadline."""

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Store call {operation!r} exceeded {timeout}s deadline")


class NotFoundError(EtagConcurrencyError):
    """Raised when a resource is not found."""


class RecordNotFoundError(NotFoundError):
    """Raised when a record key does not exist in its collection/partition."""

    def __init__(
        self, collection: str, key: str, partition_key: object = None
    ) -> None:
        self.collection = collection
        self.key = key
        self.partition_key = partition_key
        msg = f"{collection} with key={key!r} not found"
        if partition_key is not None:
            msg += f" in partition {partition_key!r}"
        super().__init__(msg)


class ValidationError(EtagConcurrencyError):
    """Raised when arguments to a resolver operation are invalid.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class InfrastructureError(EtagConcurrencyError):
    """Base class for all infrastructure-related errors."""


class PersistenceError(InfrastructureError):
    """Base class for all persistence-related errors."""


class DocumentStoreError(PersistenceError):
    """Raised when the document store rejects an operation."""


class RecordExistsError(PersistenceError):
    """Raised when creating a record whose key is already taken."""

    def __init__(self, collection: str, key: str) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"{collection} with key={key!r} already exists")


class StoreTransportError(PersistenceError):
    """Raised when the document store cannot be reached.

    Never retried by the resolver; retry belongs to the store client.
    """


class StoreConnectionError(StoreTransportError):
    """Raised when a connection to the document store cannot be established."""
