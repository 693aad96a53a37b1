"""Envelope — immutable record of one outgoing outbox message."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Envelope(BaseModel):
    """One message waiting in (or delivered from) the transactional outbox.

    Every field is fixed at creation except ``processed_at``, which moves
    from ``None`` to a timestamp exactly once, after the broker has
    acknowledged the publish. Since the model is frozen that transition is
    expressed as a copy (:meth:`mark_dispatched`); stores persist the result.

    ``id`` doubles as the deduplication token for consumers.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str = Field(..., description="Causally links related messages")
    topic: str = Field(..., min_length=1)
    key: str = Field(..., description="Partition / routing key")
    type: str = Field(..., min_length=1, description="Logical message type tag")
    format: str = Field(..., description="Payload encoding, e.g. application/json")
    data: bytes
    occurred_at: datetime = Field(default_factory=utc_now)
    processed_at: datetime | None = None

    @property
    def is_dispatched(self) -> bool:
        return self.processed_at is not None

    def mark_dispatched(self, at: datetime) -> Envelope:
        """Return a dispatched copy. Already dispatched envelopes are returned as-is."""
        if self.processed_at is not None:
            return self
        return self.model_copy(update={"processed_at": at})

    def headers(self) -> dict[str, str]:
        """Transport headers carried alongside the payload."""
        return {
            "message_id": self.id,
            "correlation_id": self.correlation_id,
            "type": self.type,
            "content_type": self.format,
        }


__all__ = ["Envelope", "utc_now"]
