"""IdempotencyFilter — consumer-side dedup by envelope id."""

from __future__ import annotations

import asyncio
from collections import OrderedDict


class IdempotencyFilter:
    """Deduplicate redelivered messages by ``message_id``.

    The dispatcher delivers at least once: a crash between publish and the
    dispatched-mark commit republishes the same envelope id. Consumers call
    :meth:`is_duplicate` before handling and :meth:`mark_processed` after.

    Remembers the ``max_entries`` most recent ids; the oldest are evicted.
    """

    def __init__(self, *, max_entries: int = 100_000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._seen)

    async def is_duplicate(self, message_id: str) -> bool:
        """Return True if this message_id has already been processed."""
        async with self._lock:
            if message_id in self._seen:
                self._seen.move_to_end(message_id)
                return True
            return False

    async def mark_processed(self, message_id: str) -> None:
        """Record that this message_id has been processed."""
        async with self._lock:
            self._seen[message_id] = None
            self._seen.move_to_end(message_id)
            while len(self._seen) > self._max_entries:
                self._seen.popitem(last=False)

    def clear(self) -> None:
        self._seen.clear()
