"""KafkaBrokerPublisher — IBrokerPublisher over aiokafka with key-based partitioning."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from outbox_core.exceptions import BrokerPublishError
from outbox_core.ports.broker import IBrokerPublisher

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .connection import KafkaConnectionManager

logger = logging.getLogger("txoutbox.kafka")


class KafkaBrokerPublisher(IBrokerPublisher):
    """Kafka adapter implementing IBrokerPublisher.

    ``topic`` is the Kafka topic and ``key`` the partition key, so envelopes
    sharing a key land on one partition in publish order. A publish returns
    only after the broker acknowledged the record (``send_and_wait``).
    Envelope headers are forwarded as Kafka record headers.
    """

    def __init__(self, connection: KafkaConnectionManager) -> None:
        self._connection = connection
        self._producer: AIOKafkaProducer | None = None
        self._lock = asyncio.Lock()

    async def _get_producer(self) -> AIOKafkaProducer:
        """Create or return existing producer."""
        if self._producer is not None:
            return self._producer
        async with self._lock:
            if self._producer is None:
                producer = AIOKafkaProducer(**self._connection.producer_config())
                await producer.start()
                self._producer = producer
                logger.info(
                    "Kafka producer started (%s)", self._connection.bootstrap_servers
                )
        return self._producer

    async def publish(
        self,
        topic: str,
        key: str,
        payload: bytes,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Publish *payload* to *topic* and wait for the broker acknowledgement.

        Raises:
            BrokerPublishError: the producer could not start or the send failed.
        """
        record_headers = [
            (name, value.encode("utf-8")) for name, value in (headers or {}).items()
        ]
        envelope_id = (headers or {}).get("message_id")
        try:
            producer = await self._get_producer()
            await producer.send_and_wait(
                topic,
                value=payload,
                key=key.encode("utf-8") if key else None,
                headers=record_headers,
            )
        except KafkaError as e:
            raise BrokerPublishError(
                f"Kafka rejected record for topic {topic!r}: {e}",
                topic=topic,
                envelope_id=envelope_id,
            ) from e
        except (OSError, asyncio.TimeoutError) as e:
            raise BrokerPublishError(
                f"Kafka unreachable while publishing to {topic!r}: {e}",
                topic=topic,
                envelope_id=envelope_id,
            ) from e

    async def close(self) -> None:
        """Stop the producer."""
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None

    async def health_check(self) -> bool:
        """Return True if the cluster is reachable."""
        return await self._connection.health_check()
