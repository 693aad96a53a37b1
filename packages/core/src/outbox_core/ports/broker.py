"""IBrokerPublisher — the transport the dispatcher publishes to."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IBrokerPublisher(Protocol):
    """
    Port for publishing envelope payloads to a broker (Kafka, RabbitMQ, …).

    Infrastructure packages provide concrete adapters.
    """

    async def publish(
        self,
        topic: str,
        key: str,
        payload: bytes,
        *,
        headers: dict[str, str] | None = None,
    ) -> None:
        """
        Publish *payload* to *topic* partitioned by *key*.

        Returns once the broker has acknowledged the message.

        Raises:
            BrokerPublishError: when the broker did not accept the message.
        """
        ...
