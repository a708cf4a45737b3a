"""
Redis utilities - per-user rate limiting
"""

import logging
from typing import Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from visibility_engine.config import get_settings

logger = logging.getLogger(__name__)

_pool: Optional[redis.ConnectionPool] = None


def get_redis() -> redis.Redis:
    """Redis client on the shared connection pool"""
    global _pool
    if _pool is None:
        _pool = redis.ConnectionPool.from_url(
            get_settings().REDIS_URL,
            max_connections=20,
            decode_responses=True,
        )
    return redis.Redis(connection_pool=_pool)


async def close_redis():
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


class RateLimitCache:
    """Fixed-window request counter keyed by identifier"""

    def __init__(self, prefix: str = "visibility:ratelimit"):
        self.prefix = prefix

    async def check_rate_limit(
        self,
        identifier: str,
        limit: int,
        window_seconds: int
    ) -> Tuple[bool, int]:
        """
        Count one request against `identifier`'s current window.

        Returns (is_allowed, remaining_requests). The window starts with the
        first request and expires after `window_seconds`. Fails open when
        Redis is unreachable.
        """
        key = f"{self.prefix}:{identifier}"
        try:
            async with get_redis().pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, window_seconds, nx=True)
                count, _ = await pipe.execute()
        except RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing {identifier}: {e}")
            return True, limit

        if count > limit:
            return False, 0
        return True, limit - count


rate_limit = RateLimitCache()
