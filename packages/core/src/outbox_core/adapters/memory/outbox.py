"""InMemoryOutboxStore — dict-backed outbox table for tests and local runs."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from ...exceptions import StorageError, UnitOfWorkStateError
from ...ports.outbox import IOutboxStore

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from ...envelope import Envelope
    from ...ports.unit_of_work import UnitOfWork
    from .unit_of_work import InMemoryUnitOfWork


def _staging(uow: UnitOfWork) -> InMemoryUnitOfWork:
    from .unit_of_work import InMemoryUnitOfWork

    if not isinstance(uow, InMemoryUnitOfWork):
        raise UnitOfWorkStateError(
            f"InMemoryOutboxStore requires an InMemoryUnitOfWork, got {type(uow).__name__}"
        )
    return uow


class InMemoryOutboxStore(IOutboxStore):
    """In-memory implementation of ``IOutboxStore``.

    Writes are staged on the :class:`InMemoryUnitOfWork` and only reach the
    committed rows when it commits. Reads see committed rows only.
    """

    def __init__(self) -> None:
        self._rows: dict[str, Envelope] = {}
        self._lock = threading.Lock()

    async def insert(self, envelopes: Sequence[Envelope], uow: UnitOfWork) -> None:
        staged = list(envelopes)

        def check() -> None:
            ids = [e.id for e in staged]
            if len(set(ids)) != len(ids):
                raise StorageError("Duplicate envelope id within one insert")
            clashing = [i for i in ids if i in self._rows]
            if clashing:
                raise StorageError(f"Envelope id already stored: {clashing[0]}")

        def apply() -> None:
            with self._lock:
                for envelope in staged:
                    self._rows[envelope.id] = envelope

        _staging(uow).stage(apply, check=check)

    async def select_undispatched(self, limit: int, uow: UnitOfWork) -> list[Envelope]:
        _staging(uow)
        with self._lock:
            pending = [e for e in self._rows.values() if e.processed_at is None]
        pending.sort(key=lambda e: (e.occurred_at, e.id))
        return pending[:limit]

    async def mark_dispatched(
        self, ids: Sequence[str], at: datetime, uow: UnitOfWork
    ) -> None:
        targets = list(ids)

        def apply() -> None:
            with self._lock:
                for envelope_id in targets:
                    envelope = self._rows.get(envelope_id)
                    if envelope is not None:
                        self._rows[envelope_id] = envelope.mark_dispatched(at)

        _staging(uow).stage(apply)

    # ── Test helpers ─────────────────────────────────────────────

    def get(self, envelope_id: str) -> Envelope | None:
        with self._lock:
            return self._rows.get(envelope_id)

    def all(self) -> list[Envelope]:
        """Every committed envelope, oldest first."""
        with self._lock:
            rows = list(self._rows.values())
        return sorted(rows, key=lambda e: (e.occurred_at, e.id))

    def undispatched(self) -> list[Envelope]:
        return [e for e in self.all() if e.processed_at is None]

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()

    def __len__(self) -> int:
        return len(self._rows)
