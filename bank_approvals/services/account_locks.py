"""
Per-account serialization of state transitions.

Approval, decline and cancellation of an account's transactions each run
their whole unit of work (read, guarded writes, commit) while holding the
owner account's lock, so within one process two approvals for the same
account never interleave their balance read-modify-write.

This is the in-process half of the concurrency story. Across processes the
guarded UPDATE/DELETE statements and the compare-and-swap balance update in
account_service are what keep the invariants; the lock only makes the
common single-process case deterministic.
"""

import asyncio
import uuid
import weakref
from contextlib import asynccontextmanager


class AccountLockRegistry:
    """Hands out one asyncio.Lock per account id.

    Locks are held weakly: once no coroutine holds or waits on an account's
    lock, it is garbage collected and the registry doesn't grow unbounded.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, account_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, account_id: uuid.UUID):
        lock = self._lock_for(account_id)
        async with lock:
            yield


account_locks = AccountLockRegistry()
