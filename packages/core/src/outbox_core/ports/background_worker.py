"""IBackgroundWorker — what a hosting process needs to run the dispatcher."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IBackgroundWorker(Protocol):
    """
    Start/stop contract for long-running outbox processes.

    Hosts call :meth:`start` once their event loop is up and :meth:`stop` on
    shutdown; both are idempotent. ``stop`` returns only once no storage
    transaction opened by the worker is still in flight.
    """

    @property
    def running(self) -> bool: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...
