"""Redis client factory: used only for publishing push events.

Balances and positions never live in Redis; the in-memory engine state is
the single owner of those.
"""

import redis.asyncio as aioredis

_redis_pool: aioredis.Redis | None = None


async def get_redis(url: str) -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            url,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
