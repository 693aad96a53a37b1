from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, LargeBinary, String, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from outbox_core.envelope import Envelope

from .types import UTCDateTime


class OutboxBase(DeclarativeBase):
    """
    Declarative base for the outbox table.

    Create it with ``OutboxBase.metadata.create_all`` or copy the table into
    your own migrations; the core never migrates schemas itself.
    """


class OutboxEnvelopeModel(OutboxBase):
    """
    One outbox envelope row.
    ``processed_at IS NULL`` means the envelope has not been dispatched yet.
    """

    __tablename__ = "outbox"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    correlation_id: Mapped[str] = mapped_column(String(255), index=True)
    topic: Mapped[str] = mapped_column(String(255))
    key: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(255))
    format: Mapped[str] = mapped_column(String(100))
    data: Mapped[bytes] = mapped_column(LargeBinary)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index(
            "ix_outbox_undispatched",
            "processed_at",
            "occurred_at",
            postgresql_where=text("processed_at IS NULL"),
            sqlite_where=text("processed_at IS NULL"),
        ),
    )

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> OutboxEnvelopeModel:
        return cls(
            id=envelope.id,
            correlation_id=envelope.correlation_id,
            topic=envelope.topic,
            key=envelope.key,
            type=envelope.type,
            format=envelope.format,
            data=envelope.data,
            occurred_at=envelope.occurred_at,
            processed_at=envelope.processed_at,
        )

    def to_envelope(self) -> Envelope:
        return Envelope(
            id=self.id,
            correlation_id=self.correlation_id,
            topic=self.topic,
            key=self.key,
            type=self.type,
            format=self.format,
            data=bytes(self.data),
            occurred_at=self.occurred_at,
            processed_at=self.processed_at,
        )
