"""InMemoryUnitOfWork — staged writes applied atomically on commit."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...exceptions import ConcurrencyConflictError
from ...ports.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable

    from .database import InMemoryDatabase

_MISSING = object()


class InMemoryUnitOfWork(UnitOfWork):
    """In-memory implementation of UnitOfWork.

    Domain rows and outbox rows are staged as (check, apply) pairs. Commit
    runs every check first and then every apply while holding the database
    lock, so either all staged writes become visible or none do.
    """

    def __init__(self, database: InMemoryDatabase) -> None:
        super().__init__(database.outbox)
        self._database = database
        self._checks: list[Callable[[], None]] = []
        self._writes: list[Callable[[], None]] = []
        self._local: dict[tuple[str, str], Any] = {}

    @property
    def database(self) -> InMemoryDatabase:
        return self._database

    def stage(
        self,
        apply: Callable[[], None],
        *,
        check: Callable[[], None] | None = None,
    ) -> None:
        """Stage a write; *check* may raise to veto the whole commit."""
        self._ensure_active()
        if check is not None:
            self._checks.append(check)
        self._writes.append(apply)

    # ── Domain rows ──────────────────────────────────────────────

    def save(
        self,
        table: str,
        key: str,
        value: Any,
        *,
        expected_version: int | None = None,
    ) -> None:
        """Stage an upsert of a domain row.

        With *expected_version* the commit fails with
        ``ConcurrencyConflictError`` if another transaction changed the row.
        """
        database = self._database

        def check() -> None:
            current = database.version(table, key)
            if expected_version is not None and current != expected_version:
                raise ConcurrencyConflictError(
                    f"{table}:{key} is at version {current}, expected {expected_version}"
                )

        self.stage(lambda: database._put(table, key, value), check=check)
        self._local[(table, key)] = value

    def get(self, table: str, key: str) -> Any | None:
        """Read a row, seeing this unit of work's own staged writes."""
        local = self._local.get((table, key), _MISSING)
        if local is not _MISSING:
            return local
        return self._database.get(table, key)

    # ── Transaction ──────────────────────────────────────────────

    async def _commit_transaction(self) -> None:
        self._database._apply(self._checks, self._writes)
        self._reset()

    async def _rollback_transaction(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._checks.clear()
        self._writes.clear()
        self._local.clear()
