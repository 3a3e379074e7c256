"""Redis-backed fixed-window rate limiter for the switch trigger.

Every switch uploads two documents to the signing provider, so repeated
submissions from one client are capped before any rendering starts.

Usage:
    from src.security.rate_limiter import rate_limiter

    allowed, retry_after = await rate_limiter.check("rate:203.0.113.7:switch", limit=5, window=3600)
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.db.engine import redis_client

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed window: INCR the key, set its TTL on the first hit."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def check(self, key: str, limit: int, window: int) -> tuple[bool, int]:
        """Count one request against key.

        Returns:
            (allowed, retry_after); retry_after is 0 when allowed, otherwise
            the seconds until the window resets.
        """
        try:
            count = await self._redis.incr(key)
            if count == 1:
                await self._redis.expire(key, window)
            if count <= limit:
                return True, 0
            ttl = await self._redis.ttl(key)
            return False, max(ttl, 1)
        except RedisError:
            # Fail open: an unavailable Redis must not block customers
            logger.exception("Rate limiter Redis error for key %s", key)
            return True, 0


# Module-level singleton
rate_limiter = RateLimiter(redis_client)
