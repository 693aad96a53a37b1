"""Ports — the narrow contracts the outbox core consumes."""

from __future__ import annotations

from collections.abc import Callable

from .background_worker import IBackgroundWorker
from .broker import IBrokerPublisher
from .outbox import IOutboxStore
from .unit_of_work import UnitOfWork, UnitOfWorkState

#: ``Begin()``: opens a fresh unit of work (one storage transaction).
UnitOfWorkFactory = Callable[[], UnitOfWork]

__all__ = [
    "IBackgroundWorker",
    "IBrokerPublisher",
    "IOutboxStore",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "UnitOfWorkState",
]
