"""Save outcomes and conflict reports returned by the resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class _Missing:
    """Marker for a field present on only one side of a comparison."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<missing>"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class SaveStatus(str, Enum):
    """Terminal status of a save or reconcile call.

    - **COMMITTED**: the conditional write succeeded.
    - **CONFLICTED**: a concurrent write was detected; nothing was persisted.
    - **ABORTED**: a store call ran past its deadline mid-reconcile.
    """

    COMMITTED = "COMMITTED"
    CONFLICTED = "CONFLICTED"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class FieldConflict:
    """One field whose stored value differs from the caller's proposal."""

    field: str
    current: Any
    proposed: Any


@dataclass(frozen=True)
class ConflictReport:
    """Field-level diff between proposed and currently stored values."""

    key: str
    conflicts: tuple[FieldConflict, ...] = ()

    @property
    def fields(self) -> list[str]:
        return [c.field for c in self.conflicts]

    def get(self, name: str) -> FieldConflict | None:
        for conflict in self.conflicts:
            if conflict.field == name:
                return conflict
        return None

    def as_dict(self) -> dict[str, dict[str, Any]]:
        return {
            c.field: {"current": c.current, "proposed": c.proposed}
            for c in self.conflicts
        }

    def __len__(self) -> int:
        return len(self.conflicts)

    def __contains__(self, name: object) -> bool:
        return any(c.field == name for c in self.conflicts)


@dataclass(frozen=True)
class SaveOutcome:
    """Result of ``ConflictResolver.save`` / ``reconcile``."""

    status: SaveStatus
    etag: str | None = None
    report: ConflictReport | None = None
    current_etag: str | None = None
    current_values: dict[str, Any] = field(default_factory=dict)
    attempts: int = 1
    attempts_exhausted: bool = False

    @classmethod
    def committed(cls, etag: str, *, attempts: int = 1) -> SaveOutcome:
        return cls(status=SaveStatus.COMMITTED, etag=etag, attempts=attempts)

    @classmethod
    def conflicted(
        cls,
        report: ConflictReport,
        current_etag: str,
        current_values: dict[str, Any],
        *,
        attempts: int = 1,
    ) -> SaveOutcome:
        return cls(
            status=SaveStatus.CONFLICTED,
            report=report,
            current_etag=current_etag,
            current_values=dict(current_values),
            attempts=attempts,
        )

    @property
    def is_committed(self) -> bool:
        return self.status is SaveStatus.COMMITTED

    @property
    def is_conflicted(self) -> bool:
        return self.status is SaveStatus.CONFLICTED
