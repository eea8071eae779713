"""Per-user serialization of inbound message processing."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)


class UserLockRegistry:
    """
    Hands out one lock per external user id.

    Backed by the in-memory RedisCache (single process) or the Redis one
    (shared across workers).
    """

    def __init__(self, cache: Any, timeout: int = 120):
        self.cache = cache
        self.timeout = timeout

    @asynccontextmanager
    async def hold(self, external_user_id: str) -> AsyncIterator[None]:
        logger.debug("[Locks] acquiring lock for %s", external_user_id)
        async with self.cache.lock(f"user:{external_user_id}", timeout=self.timeout):
            yield
        logger.debug("[Locks] released lock for %s", external_user_id)
