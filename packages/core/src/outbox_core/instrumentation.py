"""Instrumentation hooks — around-advice for dispatcher operations.

Metrics and tracing sinks plug in here; the outbox itself ships none.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("txoutbox.instrumentation")

#: Wraps one whole dispatch cycle. Attributes: ``batch_size``.
OP_DISPATCH_CYCLE = "outbox.dispatch.cycle"
#: Wraps one broker publish. Attributes: ``envelope_id``, ``topic``, ``key``, ``type``.
OP_PUBLISH = "outbox.publish"


@runtime_checkable
class InstrumentationHook(Protocol):
    """Protocol for instrumentation hooks (tracing, metrics, etc.)."""

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Wrap an operation with instrumentation."""
        ...


@dataclass
class HookRegistration:
    """A hook plus the operations (glob patterns) it wraps; empty means all."""

    hook: InstrumentationHook
    priority: int = 0
    operations: list[str] = field(default_factory=list)
    enabled: bool = True

    def matches(self, operation: str) -> bool:
        """Check if this registration applies to the operation."""
        if not self.enabled:
            return False
        if not self.operations:
            return True
        return any(fnmatch.fnmatch(operation, pattern) for pattern in self.operations)


class HookRegistry:
    """Registry for multiple instrumentation hooks with filtering.

    Hooks run outermost-first in ascending ``priority``.
    """

    def __init__(self) -> None:
        self._registrations: list[HookRegistration] = []

    def register(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: list[str] | None = None,
        enabled: bool = True,
    ) -> HookRegistration:
        """Register a hook with optional operation glob filters."""
        registration = HookRegistration(
            hook=hook,
            priority=priority,
            operations=list(operations or ()),
            enabled=enabled,
        )
        self._registrations.append(registration)
        self._registrations.sort(key=lambda r: r.priority)
        logger.debug(
            "Registered instrumentation hook %r (priority %d, operations %s)",
            hook,
            priority,
            operations or ["*"],
        )
        return registration

    def __len__(self) -> int:
        return len(self._registrations)

    async def execute_all(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Execute all matching hooks in priority order around *next_handler*."""
        matching = [r for r in self._registrations if r.matches(operation)]
        if not matching:
            return await next_handler()

        async def pipeline(index: int = 0) -> Any:
            if index >= len(matching):
                return await next_handler()
            registration = matching[index]
            return await registration.hook(
                operation,
                attributes,
                lambda: pipeline(index + 1),
            )

        return await pipeline()

    def clear(self) -> None:
        """Remove all registrations."""
        self._registrations.clear()


__all__ = [
    "OP_DISPATCH_CYCLE",
    "OP_PUBLISH",
    "HookRegistration",
    "HookRegistry",
    "InstrumentationHook",
]
