"""
Position Lock Registry

Per-position mutual exclusion for evaluate / adjust / close.

Locks guard short read-check-write persist steps only. A close claims the
position under the lock before calling the brokerage, so a second close for
the same id fails fast instead of submitting a duplicate order.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Set

from stopguard.shared.exceptions import PositionBusyError


class PositionLockRegistry:
    """
    In-process, id-keyed asyncio locks.

    A lock entry lives while at least one caller holds or waits for it.

    Usage:
        locks = PositionLockRegistry()

        async with locks.hold(position_id):
            ...  # re-read, compare, persist

        async with locks.claim_close(position_id):
            ...  # brokerage call happens here, lock is NOT held
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}
        self._closing: Set[str] = set()
        self._pinned: Set[str] = set()

    @asynccontextmanager
    async def hold(self, position_id: str) -> AsyncIterator[None]:
        """Serialize a persist step for one position."""
        lock = self._locks.setdefault(position_id, asyncio.Lock())
        self._users[position_id] = self._users.get(position_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[position_id] -= 1
            if self._users[position_id] == 0:
                del self._users[position_id]
                del self._locks[position_id]

    def is_closing(self, position_id: str) -> bool:
        return position_id in self._closing or position_id in self._pinned

    @asynccontextmanager
    async def claim_close(self, position_id: str) -> AsyncIterator[None]:
        """
        Mark a close in flight for the duration of the block.

        Raises:
            PositionBusyError: Another close already claimed this position
        """
        async with self.hold(position_id):
            if self.is_closing(position_id):
                raise PositionBusyError(f"Close already in progress for position {position_id}")
            self._closing.add(position_id)
        try:
            yield
        finally:
            self._closing.discard(position_id)

    def pin(self, position_id: str) -> None:
        """
        Keep a position claimed after its close block ends.

        Used when the brokerage accepted a close that could not be recorded:
        the stored record still looks open, so no further close may start
        from this process.
        """
        self._pinned.add(position_id)
