"""Per-key write serialization."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incentive_engine.database import acquire_advisory_xact_lock


class KeyedLock:
    """In-process asyncio locks, one per key.

    Locks are dropped once nobody holds or waits on them, so the map only
    grows with the number of keys in flight.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

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
                self._locks.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._locks


# Shared by every service in the process
incentive_locks = KeyedLock()


def incentive_key(user_id: object, month: str) -> str:
    return f"incentive:{user_id}:{month}"


def team_pool_key(organization_id: object, month: str) -> str:
    return f"team_pool:{organization_id}:{month}"


class LockingService:
    """Serializes writes for one (user, month) or (organization, month) key.

    Two layers:
    1. In-process keyed ``asyncio.Lock`` (always)
    2. Transaction-scoped advisory lock on PostgreSQL, released when the
       transaction commits or rolls back

    The in-process lock is held until after the commit. The unique
    constraints on the tables remain the last line against duplicates.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: KeyedLock | None = None,
    ):
        self.session_factory = session_factory
        self.locks = locks or incentive_locks

    @asynccontextmanager
    async def transaction(self, key: str) -> AsyncIterator[AsyncSession]:
        """Open a session and transaction that exclusively owns ``key``."""
        async with self.locks.hold(key):
            async with self.session_factory() as session:
                async with session.begin():
                    await acquire_advisory_xact_lock(session, key)
                    yield session
