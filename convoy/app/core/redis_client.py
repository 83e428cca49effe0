"""
Redis client initialization and connection management.

The client is created in the application lifespan and kept on
`app.state.redis`; request handlers reach it through `get_redis`.
"""

import logging

import redis.asyncio as redis
from fastapi import Request
from redis.exceptions import RedisError

from convoy.app.core.config import settings

logger = logging.getLogger("convoy.redis")


def create_redis_client() -> redis.Redis:
    """Build an async Redis client from settings. Connects lazily."""
    return redis.from_url(
        settings.redis_url,
        decode_responses=settings.redis_decode_responses,
    )


async def get_redis(request: Request):
    """
    FastAPI dependency returning the application's Redis client.

    Returns None when the app was started without one.
    """
    return getattr(request.app.state, "redis", None)


async def ping_redis(client) -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    if client is None:
        return False
    try:
        return bool(await client.ping())
    except (RedisError, OSError) as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False
