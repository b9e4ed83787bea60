from typing import Optional

import redis.asyncio as redis_async

from ai_router.config import get_settings


_redis: Optional[redis_async.Redis] = None


def get_redis() -> redis_async.Redis:
    """Shared Redis client for session records. Connections are opened lazily."""
    global _redis
    if _redis is None:
        settings = get_settings()
        _redis = redis_async.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=5,
        )
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
