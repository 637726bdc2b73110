"""
CallWarden - Per-Identity Locks

Serialises every mutation touching one caller identity while leaving other
identities free to proceed. Locks exist only while held or awaited.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class IdentityLocks:
    """
    Table of asyncio locks keyed by caller identity.

    Usage:
        locks = IdentityLocks()
        async with locks.hold("+15551230000"):
            ...
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, identity: str) -> AsyncIterator[None]:
        lock = self._locks.get(identity)
        if lock is None:
            lock = self._locks[identity] = asyncio.Lock()
        self._users[identity] = self._users.get(identity, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[identity] -= 1
            if self._users[identity] == 0:
                del self._users[identity]
                del self._locks[identity]

    def __len__(self) -> int:
        return len(self._locks)
