"""
Shared Redis client for the session cache.
Only touched when FF_USE_REDIS is on.
"""

import logging

from .config import get_settings

logger = logging.getLogger(__name__)

_redis_client = None


async def get_redis():
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis

        settings = get_settings()
        if not settings.redis_url:
            raise RuntimeError("FF_USE_REDIS is on but REDIS_URL is not set")
        _redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
        )
        logger.info("Redis client created")
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")
