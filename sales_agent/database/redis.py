"""
Lightweight in-memory RedisCache replacement for local development.

Provides the per-user lock used to serialize message processing so the API can
run without a real Redis instance. Locks only cover the current process.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple


class RedisCache:
    def __init__(self) -> None:
        # lock name -> (lock, holders and waiters); dropped when nobody references it
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def lock(self, name: str, timeout: int = 120) -> AsyncIterator[None]:
        # Timeout is ignored in this in-memory implementation.
        lock, users = self._locks.get(name) or (asyncio.Lock(), 0)
        self._locks[name] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[name]
            if users == 1:
                del self._locks[name]
            else:
                self._locks[name] = (lock, users - 1)

    def ping(self) -> bool:
        """Health check; always True in local/dev mode."""
        return True
