"""Exceptions raised by the transactional outbox."""

from __future__ import annotations


class OutboxError(Exception):
    """Root exception for the entire outbox toolkit."""


# ── Registration ─────────────────────────────────────────────────────


class RegistrationError(OutboxError):
    """Base class for message-type registration problems."""


class UnregisteredMessageTypeError(RegistrationError):
    """Raised when an event has no registered (topic, key, type) mapping.

    Fatal to the enqueue call only; the surrounding unit of work is untouched.
    """

    def __init__(self, message_type: str | None, message: object = None) -> None:
        self.message_type = message_type
        if message_type is None:
            text = (
                f"{type(message).__name__} does not declare a message_type "
                "and cannot be routed to the outbox"
            )
        else:
            text = f"No outbox registration for message type {message_type!r}"
        super().__init__(text)


class DuplicateRegistrationError(RegistrationError):
    """Raised when the same message type tag is registered twice."""

    def __init__(self, message_type: str) -> None:
        self.message_type = message_type
        super().__init__(f"Message type {message_type!r} is already registered")


class MissingMessageKeyError(RegistrationError):
    """Raised when an event lacks the attribute its registration keys on."""

    def __init__(self, message_type: str, attribute: str) -> None:
        self.message_type = message_type
        self.attribute = attribute
        super().__init__(
            f"Message type {message_type!r} is keyed on {attribute!r}, "
            "which the event does not have"
        )


class PayloadSerializationError(OutboxError):
    """Raised when an event cannot be serialized into an envelope payload."""


# ── Transactions ─────────────────────────────────────────────────────


class UnitOfWorkStateError(OutboxError):
    """Raised when a unit of work is used after it was committed or rolled back."""


class ConcurrencyConflictError(OutboxError):
    """Raised when storage detects a conflicting concurrent write.

    Transient: the caller must retry the whole unit of work.
    """


# ── Infrastructure ───────────────────────────────────────────────────


class InfrastructureError(OutboxError):
    """Base class for all infrastructure-related errors."""


class StorageError(InfrastructureError):
    """Raised when the outbox storage fails to read, write or commit."""


class BrokerPublishError(InfrastructureError):
    """Raised by broker adapters when a publish is not acknowledged.

    Stops the current dispatch batch at the failing envelope; the envelope
    stays undispatched and is retried on a later cycle.
    """

    def __init__(
        self,
        message: str,
        *,
        topic: str | None = None,
        envelope_id: str | None = None,
    ) -> None:
        self.topic = topic
        self.envelope_id = envelope_id
        super().__init__(message)


__all__ = [
    "BrokerPublishError",
    "ConcurrencyConflictError",
    "DuplicateRegistrationError",
    "InfrastructureError",
    "MissingMessageKeyError",
    "OutboxError",
    "PayloadSerializationError",
    "RegistrationError",
    "StorageError",
    "UnitOfWorkStateError",
    "UnregisteredMessageTypeError",
]
