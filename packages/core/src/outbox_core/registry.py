"""Message-type registry — maps a stable type tag to topic, key and serializer."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict

from .exceptions import (
    DuplicateRegistrationError,
    MissingMessageKeyError,
    UnregisteredMessageTypeError,
)
from .serialization import IPayloadSerializer, JsonPayloadSerializer

KeySelector = Callable[[Any], object]


class OutboxEvent(BaseModel):
    """Base class for application events routed through the outbox.

    Subclasses declare the stable ``message_type`` tag they are registered
    under. The tag, not the Python class, is what the registry looks up, so
    renaming or moving a class does not change routing.
    """

    model_config = ConfigDict(frozen=True)

    message_type: ClassVar[str] = ""


def message_type_of(message: Any) -> str | None:
    """Return the type tag declared by *message*, or ``None``."""
    if isinstance(message, Mapping):
        tag = message.get("message_type")
    else:
        tag = getattr(message, "message_type", None)
    if isinstance(tag, str) and tag:
        return tag
    return None


@dataclass(frozen=True)
class MessageRegistration:
    """Routing for one message type."""

    type: str
    topic: str
    key_selector: KeySelector
    serializer: IPayloadSerializer

    def key_for(self, message: Any) -> str:
        value = self.key_selector(message)
        return "" if value is None else str(value)


def _attribute_selector(message_type: str, name: str) -> KeySelector:
    def select(message: Any) -> object:
        if isinstance(message, Mapping):
            return message.get(name)
        try:
            return getattr(message, name)
        except AttributeError as e:
            raise MissingMessageKeyError(message_type, name) from e

    return select


class MessageTypeTable(Mapping[str, MessageRegistration]):
    """Immutable lookup table produced by :meth:`MessageTypeRegistry.build`.

    Consumed read-only by the enqueue path.
    """

    def __init__(self, registrations: Mapping[str, MessageRegistration]) -> None:
        self._registrations = MappingProxyType(dict(registrations))

    def __getitem__(self, message_type: str) -> MessageRegistration:
        return self._registrations[message_type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._registrations)

    def __len__(self) -> int:
        return len(self._registrations)

    def lookup(self, message: Any) -> MessageRegistration:
        """Resolve the registration for *message* by its ``message_type`` tag.

        Raises:
            UnregisteredMessageTypeError: if the tag is missing or unknown.
        """
        tag = message_type_of(message)
        if tag is None:
            raise UnregisteredMessageTypeError(None, message)
        registration = self._registrations.get(tag)
        if registration is None:
            raise UnregisteredMessageTypeError(tag, message)
        return registration


class MessageTypeRegistry:
    """Startup-time builder for the outbox routing table.

    **Explicit registration** is required. Build once, then hand the frozen
    table to :class:`~outbox_core.enqueue.Outbox`.

    Usage::

        registry = MessageTypeRegistry()
        registry.register(
            "student-enrolled", topic="education.students", key="student_id"
        )
        table = registry.build()
    """

    def __init__(self) -> None:
        self._registrations: dict[str, MessageRegistration] = {}
        self._default_serializer: IPayloadSerializer = JsonPayloadSerializer()

    def register(
        self,
        message_type: str,
        *,
        topic: str,
        key: str | KeySelector,
        serializer: IPayloadSerializer | None = None,
    ) -> MessageTypeRegistry:
        """Register routing for *message_type*.

        Args:
            message_type: Stable type tag, also written to ``Envelope.type``.
            topic: Destination channel.
            key: Attribute name or callable producing the partition key.
            serializer: Payload encoder; defaults to JSON.
        """
        if not message_type:
            raise ValueError("message_type must be a non-empty string")
        if not topic:
            raise ValueError("topic must be a non-empty string")
        if message_type in self._registrations:
            raise DuplicateRegistrationError(message_type)

        selector = _attribute_selector(message_type, key) if isinstance(key, str) else key
        self._registrations[message_type] = MessageRegistration(
            type=message_type,
            topic=topic,
            key_selector=selector,
            serializer=serializer or self._default_serializer,
        )
        return self

    def register_event(
        self,
        event_class: type[OutboxEvent],
        *,
        topic: str,
        key: str | KeySelector,
        serializer: IPayloadSerializer | None = None,
    ) -> MessageTypeRegistry:
        """Register an :class:`OutboxEvent` subclass under its declared tag."""
        return self.register(
            event_class.message_type, topic=topic, key=key, serializer=serializer
        )

    def has(self, message_type: str) -> bool:
        return message_type in self._registrations

    def build(self) -> MessageTypeTable:
        """Freeze the current registrations into an immutable table."""
        return MessageTypeTable(self._registrations)


__all__ = [
    "KeySelector",
    "MessageRegistration",
    "MessageTypeRegistry",
    "MessageTypeTable",
    "OutboxEvent",
    "message_type_of",
]
