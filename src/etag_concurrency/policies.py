"""Reconciliation policies — what to do when a conditional save conflicts."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Union

if TYPE_CHECKING:
    from .outcomes import ConflictReport


class ReconcileDecision(str, Enum):
    """Decisions a policy can return for a conflict.

    - **ABORT**: stop and hand the conflict back to the caller.
    - **OVERWRITE_WITH_MINE**: accept the stored ETag as the new baseline and
      retry writing the caller's proposed values.
    """

    ABORT = "ABORT"
    OVERWRITE_WITH_MINE = "OVERWRITE_WITH_MINE"


# Policies may be plain or async callables.
ReconciliationPolicy = Callable[
    ["ConflictReport"], Union[ReconcileDecision, Awaitable[ReconcileDecision]]
]


def always_abort(_report: ConflictReport) -> ReconcileDecision:
    return ReconcileDecision.ABORT


def always_overwrite(_report: ConflictReport) -> ReconcileDecision:
    return ReconcileDecision.OVERWRITE_WITH_MINE


def abort_on_fields(*fields: str) -> Callable[[ConflictReport], ReconcileDecision]:
    """Overwrite unless the conflict touches one of ``fields``."""
    protected = frozenset(fields)

    def policy(report: ConflictReport) -> ReconcileDecision:
        if protected.intersection(report.fields):
            return ReconcileDecision.ABORT
        return ReconcileDecision.OVERWRITE_WITH_MINE

    policy.__name__ = f"abort_on_fields({', '.join(sorted(protected))})"
    return policy


class PolicyRegistry:
    """Registry for looking up reconciliation policies by name."""

    def __init__(self) -> None:
        self._policies: dict[str, ReconciliationPolicy] = {}

    def register(self, name: str, policy: ReconciliationPolicy) -> None:
        """Register a policy callable."""
        self._policies[name.lower()] = policy

    def get(self, name: str) -> ReconciliationPolicy | None:
        """Get a policy by name."""
        return self._policies.get(name.lower())

    def names(self) -> list[str]:
        return sorted(self._policies)

    @staticmethod
    def get_stock_registry() -> PolicyRegistry:
        """Get a registry pre-filled with the standard policies."""
        registry = PolicyRegistry()
        registry.register("abort", always_abort)
        registry.register("overwrite", always_overwrite)
        return registry
