"""Outbox — the write-path entry point that stages envelopes on a unit of work."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from .correlation import generate_correlation_id, get_correlation_id
from .envelope import Envelope, utc_now
from .notifier import Notifier

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from .notifier import WakeSignal
    from .ports.unit_of_work import UnitOfWork
    from .registry import MessageTypeTable

logger = logging.getLogger("txoutbox.enqueue")

_TICK = timedelta(microseconds=1)


class _OccurrenceClock:
    """UTC clock that never returns the same instant twice in this process.

    Keeps envelopes enqueued back to back in creation order when the wall
    clock resolution is coarser than the enqueue rate.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: datetime | None = None

    def now(self) -> datetime:
        with self._lock:
            current = utc_now()
            if self._last is not None and current <= self._last:
                current = self._last + _TICK
            self._last = current
            return current


_clock = _OccurrenceClock()


class Outbox:
    """Turns application events into envelopes inside the caller's transaction.

    No network I/O happens here: envelopes only become visible to the
    dispatcher once the unit of work commits.

    Usage::

        outbox = Outbox(table, wake=dispatcher.wake)

        async with uow_factory() as uow:
            uow.save("students", student.id, student)
            notifier = outbox.enqueue(uow, [StudentEnrolled(...)])
            await uow.commit()
        notifier.notify()
    """

    def __init__(self, table: MessageTypeTable, *, wake: WakeSignal | None = None) -> None:
        self._table = table
        self._wake = wake

    @property
    def table(self) -> MessageTypeTable:
        return self._table

    def build_envelope(self, event: Any, *, correlation_id: str | None = None) -> Envelope:
        """Build the envelope for one event without staging it.

        Raises:
            UnregisteredMessageTypeError: no registration for the event's tag.
            PayloadSerializationError: the registered serializer failed.
        """
        registration = self._table.lookup(event)
        return Envelope(
            correlation_id=self._resolve_correlation_id(event, correlation_id),
            topic=registration.topic,
            key=registration.key_for(event),
            type=registration.type,
            format=registration.serializer.format,
            data=registration.serializer.serialize(event),
            occurred_at=_clock.now(),
        )

    def enqueue(
        self,
        uow: UnitOfWork,
        events: Iterable[Any],
        *,
        correlation_id: str | None = None,
        notify_on_commit: bool = False,
    ) -> Notifier:
        """Stage one envelope per event on *uow* and return their notifier.

        Every event is resolved and serialized before anything is staged, so
        a failing event leaves *uow* exactly as it was.

        Args:
            uow: The active unit of work that also carries the domain writes.
            events: Zero or more registered events.
            correlation_id: Overrides the correlation of every envelope.
            notify_on_commit: Wake the dispatcher automatically after commit.
        """
        envelopes = [
            self.build_envelope(event, correlation_id=correlation_id)
            for event in events
        ]
        if envelopes:
            uow.add_envelopes(envelopes)
            logger.debug(
                "Enqueued %d envelope(s): %s",
                len(envelopes),
                ", ".join(f"{e.type}->{e.topic}" for e in envelopes),
            )

        notifier = Notifier([e.id for e in envelopes], uow, self._wake)
        if notify_on_commit and envelopes:
            uow.on_commit(notifier.notify)
        return notifier

    @staticmethod
    def _resolve_correlation_id(event: Any, explicit: str | None) -> str:
        if explicit:
            return explicit
        own = getattr(event, "correlation_id", None)
        if isinstance(own, str) and own:
            return own
        return get_correlation_id() or generate_correlation_id()


__all__ = ["Outbox"]
