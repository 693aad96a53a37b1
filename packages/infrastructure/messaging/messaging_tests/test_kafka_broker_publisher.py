"""Unit tests for KafkaBrokerPublisher with mocked connection and producer (no real broker)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiokafka.errors import KafkaTimeoutError

from outbox_core import (
    BrokerPublishError,
    Envelope,
    IBrokerPublisher,
    OutboxDispatcher,
)
from outbox_core.adapters.memory import InMemoryDatabase
from outbox_messaging.kafka.connection import KafkaConnectionManager
from outbox_messaging.kafka.publisher import KafkaBrokerPublisher

PRODUCER = "outbox_messaging.kafka.publisher.AIOKafkaProducer"


@pytest.mark.asyncio
async def test_publish_sends_key_payload_and_headers(
    mock_connection: MagicMock, mock_producer: MagicMock
) -> None:
    with patch(PRODUCER, return_value=mock_producer) as producer_cls:
        publisher = KafkaBrokerPublisher(mock_connection)
        await publisher.publish(
            "education.students",
            "s-1",
            b'{"student_id": "s-1"}',
            headers={"message_id": "e-1", "type": "student-enrolled"},
        )

    producer_cls.assert_called_once_with(bootstrap_servers="localhost:9092", acks="all")
    mock_producer.start.assert_awaited_once()
    mock_producer.send_and_wait.assert_awaited_once_with(
        "education.students",
        value=b'{"student_id": "s-1"}',
        key=b"s-1",
        headers=[("message_id", b"e-1"), ("type", b"student-enrolled")],
    )


@pytest.mark.asyncio
async def test_producer_is_started_once(
    mock_connection: MagicMock, mock_producer: MagicMock
) -> None:
    with patch(PRODUCER, return_value=mock_producer) as producer_cls:
        publisher = KafkaBrokerPublisher(mock_connection)
        await publisher.publish("t", "k1", b"1")
        await publisher.publish("t", "k2", b"2")

    producer_cls.assert_called_once()
    mock_producer.start.assert_awaited_once()
    assert mock_producer.send_and_wait.await_count == 2


@pytest.mark.asyncio
async def test_empty_key_is_sent_without_partition_key(
    mock_connection: MagicMock, mock_producer: MagicMock
) -> None:
    with patch(PRODUCER, return_value=mock_producer):
        publisher = KafkaBrokerPublisher(mock_connection)
        await publisher.publish("t", "", b"x")

    assert mock_producer.send_and_wait.call_args.kwargs["key"] is None
    assert mock_producer.send_and_wait.call_args.kwargs["headers"] == []


@pytest.mark.asyncio
async def test_kafka_error_becomes_broker_publish_error(
    mock_connection: MagicMock, mock_producer: MagicMock
) -> None:
    mock_producer.send_and_wait.side_effect = KafkaTimeoutError()

    with patch(PRODUCER, return_value=mock_producer):
        publisher = KafkaBrokerPublisher(mock_connection)
        with pytest.raises(BrokerPublishError) as exc_info:
            await publisher.publish("t", "k", b"x", headers={"message_id": "e-9"})

    assert exc_info.value.topic == "t"
    assert exc_info.value.envelope_id == "e-9"
    assert isinstance(exc_info.value.__cause__, KafkaTimeoutError)


@pytest.mark.asyncio
async def test_unreachable_cluster_on_start_becomes_broker_publish_error(
    mock_connection: MagicMock, mock_producer: MagicMock
) -> None:
    mock_producer.start.side_effect = ConnectionRefusedError("no brokers")

    with patch(PRODUCER, return_value=mock_producer):
        publisher = KafkaBrokerPublisher(mock_connection)
        with pytest.raises(BrokerPublishError, match="unreachable"):
            await publisher.publish("t", "k", b"x")


@pytest.mark.asyncio
async def test_close_stops_producer(
    mock_connection: MagicMock, mock_producer: MagicMock
) -> None:
    with patch(PRODUCER, return_value=mock_producer):
        publisher = KafkaBrokerPublisher(mock_connection)
        await publisher.publish("t", "k", b"x")
        await publisher.close()
        await publisher.close()

    mock_producer.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_health_check_delegates_to_connection(mock_connection: MagicMock) -> None:
    publisher = KafkaBrokerPublisher(mock_connection)

    assert await publisher.health_check() is True
    mock_connection.health_check.assert_awaited_once()


def test_publisher_satisfies_broker_port(mock_connection: MagicMock) -> None:
    assert isinstance(KafkaBrokerPublisher(mock_connection), IBrokerPublisher)


@pytest.mark.asyncio
async def test_dispatcher_drives_kafka_publisher(
    mock_connection: MagicMock, mock_producer: MagicMock
) -> None:
    db = InMemoryDatabase()
    envelope = Envelope(
        correlation_id="corr",
        topic="education.students",
        key="s-1",
        type="student-enrolled",
        format="application/json",
        data=b"{}",
    )
    async with db.begin() as uow:
        uow.add_envelopes([envelope])
        await uow.commit()

    with patch(PRODUCER, return_value=mock_producer):
        dispatcher = OutboxDispatcher(db.begin, KafkaBrokerPublisher(mock_connection))
        result = await dispatcher.run_cycle()

    assert result.published_ids == (envelope.id,)
    headers = dict(mock_producer.send_and_wait.call_args.kwargs["headers"])
    assert headers["message_id"] == envelope.id.encode()
    assert headers["content_type"] == b"application/json"


def test_connection_producer_config_defaults_and_overrides() -> None:
    conn = KafkaConnectionManager("kafka:9092", acks=1, client_id="outbox")

    assert conn.producer_config() == {
        "bootstrap_servers": "kafka:9092",
        "acks": 1,
        "enable_idempotence": True,
        "client_id": "outbox",
    }
    assert conn.admin_config() == {"bootstrap_servers": "kafka:9092", "client_id": "outbox"}


@pytest.mark.asyncio
async def test_connection_health_check_reports_unreachable_cluster() -> None:
    admin = MagicMock()
    admin.start = AsyncMock(side_effect=ConnectionError("down"))
    admin.close = AsyncMock()

    with patch(
        "outbox_messaging.kafka.connection.AIOKafkaAdminClient", return_value=admin
    ):
        assert await KafkaConnectionManager().health_check() is False


@pytest.mark.asyncio
async def test_connection_health_check_lists_topics() -> None:
    admin = MagicMock()
    admin.start = AsyncMock()
    admin.list_topics = AsyncMock(return_value=["education.students"])
    admin.close = AsyncMock()

    with patch(
        "outbox_messaging.kafka.connection.AIOKafkaAdminClient", return_value=admin
    ):
        assert await KafkaConnectionManager().health_check() is True

    admin.close.assert_awaited_once()
