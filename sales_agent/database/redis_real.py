"""
Real Redis-backed lock store for production when REDIS_URL is set.
Implements the same interface as sales_agent.database.redis (in-memory stub).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis
import redis.asyncio as aioredis


class RedisCache:
    """
    Redis-backed distributed lock. Use when several API workers may receive
    webhooks for the same user.
    """

    def __init__(self, url: str, blocking_timeout: float = 60.0) -> None:
        self._url = url
        self._client = aioredis.from_url(url, decode_responses=True)
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def lock(self, name: str, timeout: int = 120) -> AsyncIterator[None]:
        # `timeout` bounds how long a crashed worker can hold the lock
        async with self._client.lock(f"lock:{name}", timeout=timeout, blocking_timeout=self._blocking_timeout):
            yield

    def ping(self) -> bool:
        client = redis.from_url(self._url)
        try:
            return bool(client.ping())
        finally:
            client.close()
