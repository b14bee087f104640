"""Per-workspace serialization of lifecycle mutations.

One asyncio.Lock per key, created on first use. Keys are workspace ids, or
``event:<event_id>`` while a workspace is being provisioned and has no id yet.

This serializes work inside one process. The workspace row's version column
covers the window between releasing the lock and committing, and any other
process writing the same row.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID


class WorkspaceLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @staticmethod
    def workspace_key(workspace_id: UUID) -> str:
        return f"workspace:{workspace_id}"

    @staticmethod
    def event_key(event_id: UUID) -> str:
        return f"event:{event_id}"

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def for_workspace(self, workspace_id: UUID):
        return self.hold(self.workspace_key(workspace_id))

    def for_event(self, event_id: UUID):
        return self.hold(self.event_key(event_id))

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
