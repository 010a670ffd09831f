"""Store-call hooks — priority-ordered wrappers around ``docstore.*`` operations."""

from __future__ import annotations

import fnmatch
import functools
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable


@runtime_checkable
class InstrumentationHook(Protocol):
    """Wraps one store call; must await ``next_handler`` exactly once."""

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any: ...


@dataclass(frozen=True, eq=False)
class HookRegistration:
    """A hook plus the store calls it applies to.

    ``operations`` are glob patterns over names like
    ``docstore.conditional_write``; ``collections`` is matched against the
    call's ``collection`` attribute.  Empty means "all".
    """

    hook: InstrumentationHook
    priority: int = 0
    operations: tuple[str, ...] = ()
    collections: frozenset[str] = frozenset()

    def applies_to(self, operation: str, attributes: dict[str, Any]) -> bool:
        if self.operations and not any(
            fnmatch.fnmatchcase(operation, pattern) for pattern in self.operations
        ):
            return False
        if not self.collections:
            return True
        return attributes.get("collection") in self.collections


class HookRegistry:
    """Ordered set of hooks; lower ``priority`` wraps further out."""

    def __init__(self) -> None:
        self._registrations: list[HookRegistration] = []

    def register(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: Iterable[str] = (),
        collections: Iterable[str] = (),
    ) -> HookRegistration:
        registration = HookRegistration(
            hook,
            priority=priority,
            operations=tuple(operations),
            collections=frozenset(collections),
        )
        self._registrations.append(registration)
        # stable: equal priorities keep registration order
        self._registrations.sort(key=lambda r: r.priority)
        return registration

    def unregister(self, registration: HookRegistration) -> None:
        self._registrations.remove(registration)

    def clear(self) -> None:
        self._registrations.clear()

    def __len__(self) -> int:
        return len(self._registrations)

    async def execute_all(
        self,
        operation: str,
        attributes: dict[str, Any],
        call: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run ``call`` inside every hook that applies to ``operation``."""
        chain: Callable[[], Awaitable[Any]] = call
        for registration in reversed(self._registrations):
            if registration.applies_to(operation, attributes):
                chain = functools.partial(
                    registration.hook, operation, attributes, chain
                )
        return await chain()


_current_registry: ContextVar[HookRegistry | None] = ContextVar(
    "etag_concurrency_hooks", default=None
)


def get_hook_registry() -> HookRegistry:
    """Registry of the current context, created on first use."""
    registry = _current_registry.get()
    if registry is None:
        registry = HookRegistry()
        _current_registry.set(registry)
    return registry


def set_hook_registry(registry: HookRegistry) -> None:
    _current_registry.set(registry)
