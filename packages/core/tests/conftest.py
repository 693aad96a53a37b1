"""Shared fixtures for the outbox core tests."""

from __future__ import annotations

import pytest

from outbox_core import (
    DispatcherConfig,
    MessageTypeRegistry,
    MessageTypeTable,
    Outbox,
    OutboxDispatcher,
    RetryPolicy,
)
from outbox_core.adapters.memory import InMemoryBroker, InMemoryDatabase


@pytest.fixture
def table() -> MessageTypeTable:
    registry = MessageTypeRegistry()
    registry.register("student-enrolled", topic="A", key="student_id")
    registry.register("grade-recorded", topic="B", key="student_id")
    return registry.build()


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def fast_config() -> DispatcherConfig:
    return DispatcherConfig(
        batch_size=10,
        poll_interval=60.0,
        retry=RetryPolicy(base_delay=0.01, max_delay=0.05, jitter=False),
        stop_timeout=1.0,
    )


@pytest.fixture
def dispatcher(
    db: InMemoryDatabase, broker: InMemoryBroker, fast_config: DispatcherConfig
) -> OutboxDispatcher:
    return OutboxDispatcher(db.begin, broker, config=fast_config)


@pytest.fixture
def outbox(table: MessageTypeTable, dispatcher: OutboxDispatcher) -> Outbox:
    return Outbox(table, wake=dispatcher.wake)
