"""Broker adapters and consumer-side helpers for the transactional outbox."""

from __future__ import annotations

from .idempotency import IdempotencyFilter
from .kafka import KafkaBrokerPublisher, KafkaConnectionManager

__all__ = [
    "IdempotencyFilter",
    "KafkaBrokerPublisher",
    "KafkaConnectionManager",
]
