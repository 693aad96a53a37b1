"""InMemoryBroker — IBrokerPublisher that records publishes for tests."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from ...exceptions import BrokerPublishError
from ...ports.broker import IBrokerPublisher

FailurePredicate = Callable[["PublishedMessage"], bool]


@dataclass(frozen=True)
class PublishedMessage:
    topic: str
    key: str
    payload: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def message_id(self) -> str | None:
        return self.headers.get("message_id")


class InMemoryBroker(IBrokerPublisher):
    """In-memory broker with failure injection.

    ``fail_next(n)`` rejects the next *n* publishes; ``fail_on(predicate)``
    rejects every publish the predicate matches until :meth:`heal`.
    """

    def __init__(self) -> None:
        self._published: list[PublishedMessage] = []
        self._predicates: list[FailurePredicate] = []
        self._fail_next = 0
        self.attempts = 0

    async def publish(
        self,
        topic: str,
        key: str,
        payload: bytes,
        *,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.attempts += 1
        message = PublishedMessage(topic, key, payload, dict(headers or {}))
        if self._fail_next > 0:
            self._fail_next -= 1
            raise BrokerPublishError("Injected broker failure", topic=topic)
        if any(predicate(message) for predicate in self._predicates):
            raise BrokerPublishError("Broker rejected message", topic=topic)
        self._published.append(message)

    # ── Failure injection ────────────────────────────────────────

    def fail_next(self, count: int = 1) -> None:
        self._fail_next += count

    def fail_on(self, predicate: FailurePredicate) -> None:
        self._predicates.append(predicate)

    def heal(self) -> None:
        self._predicates.clear()
        self._fail_next = 0

    # ── Assertions ───────────────────────────────────────────────

    @property
    def published(self) -> list[PublishedMessage]:
        return list(self._published)

    def messages_for(self, topic: str) -> list[PublishedMessage]:
        return [m for m in self._published if m.topic == topic]

    def published_ids(self) -> list[str | None]:
        return [m.message_id for m in self._published]

    def clear(self) -> None:
        self._published.clear()
        self.attempts = 0
