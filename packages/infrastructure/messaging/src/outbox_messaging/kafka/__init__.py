"""Kafka adapter (aiokafka)."""

from __future__ import annotations

from .connection import KafkaConnectionManager
from .publisher import KafkaBrokerPublisher

__all__ = ["KafkaBrokerPublisher", "KafkaConnectionManager"]
