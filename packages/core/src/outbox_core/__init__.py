"""Transactional outbox core — envelopes, enqueue, unit of work and dispatcher."""

from __future__ import annotations

from .correlation import (
    correlation_scope,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from .dispatcher import (
    CycleResult,
    DispatcherConfig,
    DispatcherState,
    DispatcherStats,
    OutboxDispatcher,
)
from .enqueue import Outbox
from .envelope import Envelope
from .exceptions import (
    BrokerPublishError,
    ConcurrencyConflictError,
    DuplicateRegistrationError,
    InfrastructureError,
    MissingMessageKeyError,
    OutboxError,
    PayloadSerializationError,
    RegistrationError,
    StorageError,
    UnitOfWorkStateError,
    UnregisteredMessageTypeError,
)
from .instrumentation import (
    OP_DISPATCH_CYCLE,
    OP_PUBLISH,
    HookRegistry,
    InstrumentationHook,
)
from .notifier import Notifier, WakeSignal
from .ports import (
    IBackgroundWorker,
    IBrokerPublisher,
    IOutboxStore,
    UnitOfWork,
    UnitOfWorkFactory,
    UnitOfWorkState,
)
from .registry import (
    MessageRegistration,
    MessageTypeRegistry,
    MessageTypeTable,
    OutboxEvent,
)
from .retry import RetryPolicy
from .serialization import JSON_FORMAT, IPayloadSerializer, JsonPayloadSerializer

__all__ = [
    # Envelope & registry
    "Envelope",
    "MessageRegistration",
    "MessageTypeRegistry",
    "MessageTypeTable",
    "OutboxEvent",
    "JSON_FORMAT",
    "IPayloadSerializer",
    "JsonPayloadSerializer",
    # Write path
    "Outbox",
    "Notifier",
    "WakeSignal",
    # Ports
    "IBackgroundWorker",
    "IBrokerPublisher",
    "IOutboxStore",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "UnitOfWorkState",
    # Dispatcher
    "CycleResult",
    "DispatcherConfig",
    "DispatcherState",
    "DispatcherStats",
    "OutboxDispatcher",
    "RetryPolicy",
    # Instrumentation
    "HookRegistry",
    "InstrumentationHook",
    "OP_DISPATCH_CYCLE",
    "OP_PUBLISH",
    # Correlation
    "correlation_scope",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    # Exceptions
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
