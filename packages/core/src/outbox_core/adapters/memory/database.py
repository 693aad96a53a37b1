"""InMemoryDatabase — committed state shared by in-memory units of work."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .outbox import InMemoryOutboxStore
from .unit_of_work import InMemoryUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


@dataclass(frozen=True)
class VersionedRow:
    version: int
    value: Any


class InMemoryDatabase:
    """Domain tables plus the outbox table, committed atomically.

    ``begin`` is the unit-of-work factory handed to the dispatcher and to
    application code alike.

    Usage::

        db = InMemoryDatabase()
        async with db.begin() as uow:
            uow.save("students", "s-1", {"name": "Ada"})
            outbox.enqueue(uow, [StudentEnrolled(student_id="s-1")])
            await uow.commit()
    """

    def __init__(self, outbox: InMemoryOutboxStore | None = None) -> None:
        self.outbox = outbox or InMemoryOutboxStore()
        self._tables: dict[str, dict[str, VersionedRow]] = {}
        self._lock = threading.Lock()
        self._commit_failures: list[Exception] = []
        self.commit_count = 0

    def begin(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self)

    # ── Committed reads ──────────────────────────────────────────

    def get(self, table: str, key: str) -> Any | None:
        row = self._tables.get(table, {}).get(key)
        return None if row is None else row.value

    def version(self, table: str, key: str) -> int:
        row = self._tables.get(table, {}).get(key)
        return 0 if row is None else row.version

    def rows(self, table: str) -> dict[str, Any]:
        return {k: r.value for k, r in self._tables.get(table, {}).items()}

    # ── Commit ───────────────────────────────────────────────────

    def _put(self, table: str, key: str, value: Any) -> None:
        rows = self._tables.setdefault(table, {})
        previous = rows.get(key)
        rows[key] = VersionedRow((previous.version if previous else 0) + 1, value)

    def _apply(
        self,
        checks: Sequence[Callable[[], None]],
        writes: Sequence[Callable[[], None]],
    ) -> None:
        with self._lock:
            if self._commit_failures:
                raise self._commit_failures.pop(0)
            for check in checks:
                check()
            for write in writes:
                write()
            self.commit_count += 1

    # ── Test helpers ─────────────────────────────────────────────

    def fail_next_commit(self, error: Exception) -> None:
        """Make the next commit raise *error* without applying anything."""
        self._commit_failures.append(error)
