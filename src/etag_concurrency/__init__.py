"""ETag-based optimistic concurrency for document stores.

Conditional saves, field-level conflict reports and a bounded, policy-driven
reconcile loop on top of any ``IDocumentStore``.  The MongoDB adapter lives
in :mod:`etag_concurrency.stores.mongo` and needs ``motor``.
"""

from __future__ import annotations

from .diff import compute_conflict_report
from .exceptions import (
    ConcurrencyError,
    DeadlineExceededError,
    DocumentStoreError,
    EtagConcurrencyError,
    EtagMismatchError,
    InfrastructureError,
    NotFoundError,
    PersistenceError,
    RecordExistsError,
    RecordNotFoundError,
    StoreConnectionError,
    StoreTransportError,
    ValidationError,
)
from .instrumentation import (
    HookRegistration,
    HookRegistry,
    InstrumentationHook,
    get_hook_registry,
    set_hook_registry,
)
from .outcomes import MISSING, ConflictReport, FieldConflict, SaveOutcome, SaveStatus
from .policies import (
    PolicyRegistry,
    ReconcileDecision,
    ReconciliationPolicy,
    abort_on_fields,
    always_abort,
    always_overwrite,
)
from .ports import IDocumentStore
from .records import SaveAttempt, StoredDocument, VersionedRecord
from .resolver import ConflictResolver
from .settings import CollectionConfig, ReconcileSettings

__all__ = [
    # Resolver
    "ConflictResolver",
    "compute_conflict_report",
    # Records & outcomes
    "VersionedRecord",
    "SaveAttempt",
    "StoredDocument",
    "SaveOutcome",
    "SaveStatus",
    "ConflictReport",
    "FieldConflict",
    "MISSING",
    # Policies
    "ReconcileDecision",
    "ReconciliationPolicy",
    "PolicyRegistry",
    "always_abort",
    "always_overwrite",
    "abort_on_fields",
    # Ports & settings
    "IDocumentStore",
    "CollectionConfig",
    "ReconcileSettings",
    # Instrumentation
    "HookRegistry",
    "HookRegistration",
    "InstrumentationHook",
    "get_hook_registry",
    "set_hook_registry",
    # Exceptions
    "EtagConcurrencyError",
    "ConcurrencyError",
    "EtagMismatchError",
    "DeadlineExceededError",
    "NotFoundError",
    "RecordNotFoundError",
    "ValidationError",
    "InfrastructureError",
    "PersistenceError",
    "DocumentStoreError",
    "RecordExistsError",
    "StoreTransportError",
    "StoreConnectionError",
]
