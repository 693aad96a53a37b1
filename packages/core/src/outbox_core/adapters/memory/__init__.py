"""In-memory adapters for tests and single-process use."""

from __future__ import annotations

from .broker import InMemoryBroker, PublishedMessage
from .database import InMemoryDatabase
from .outbox import InMemoryOutboxStore
from .unit_of_work import InMemoryUnitOfWork

__all__ = [
    "InMemoryBroker",
    "InMemoryDatabase",
    "InMemoryOutboxStore",
    "InMemoryUnitOfWork",
    "PublishedMessage",
]
