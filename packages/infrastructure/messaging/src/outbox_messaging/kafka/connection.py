"""Kafka bootstrap and health check."""

from __future__ import annotations

import logging
from typing import Any

from aiokafka.admin import AIOKafkaAdminClient

logger = logging.getLogger("txoutbox.kafka")

# Producer settings the dispatcher relies on: a publish only counts once every
# in-sync replica has it, and retried sends cannot reorder a partition.
_DELIVERY_DEFAULTS: dict[str, Any] = {
    "acks": "all",
    "enable_idempotence": True,
}


class KafkaConnectionManager:
    """Holds Kafka bootstrap config and builds producer settings.

    Does not hold a long-lived producer; :class:`KafkaBrokerPublisher`
    creates one with :meth:`producer_config`.
    """

    def __init__(
        self,
        bootstrap_servers: str | list[str] = "localhost:9092",
        **config: Any,
    ) -> None:
        """Configure bootstrap servers and optional aiokafka client kwargs."""
        self._bootstrap_servers = bootstrap_servers
        self._config = config

    @property
    def bootstrap_servers(self) -> str | list[str]:
        return self._bootstrap_servers

    def producer_config(self) -> dict[str, Any]:
        """Config dict for AIOKafkaProducer. Explicit kwargs win over defaults."""
        return {
            **_DELIVERY_DEFAULTS,
            "bootstrap_servers": self._bootstrap_servers,
            **self._config,
        }

    def admin_config(self) -> dict[str, Any]:
        producer_only = set(_DELIVERY_DEFAULTS) | {"linger_ms", "compression_type"}
        return {
            "bootstrap_servers": self._bootstrap_servers,
            **{k: v for k, v in self._config.items() if k not in producer_only},
        }

    async def health_check(self) -> bool:
        """Return True if the cluster is reachable."""
        try:
            admin = AIOKafkaAdminClient(**self.admin_config())
            await admin.start()
            try:
                await admin.list_topics()
                return True
            finally:
                await admin.close()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Kafka health check failed: %s", exc)
            return False
