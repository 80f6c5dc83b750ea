"""
Async Redis client used for cross-worker cancellation flags.

Redis is optional: with `redis_cancellation_enabled` off, nothing connects
and the health check reports it as disabled.
"""
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_redis_client: Optional[aioredis.Redis] = None

REDIS_MAX_CONNECTIONS = 10
REDIS_TIMEOUT_SECONDS = 5


def _build_client(settings: Settings) -> aioredis.Redis:
    logger.info(f"Connecting to Redis at {settings.redis_host}:{settings.redis_port}/{settings.redis_db}")
    pool = aioredis.ConnectionPool(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        password=settings.redis_password,
        decode_responses=True,
        max_connections=REDIS_MAX_CONNECTIONS,
        socket_connect_timeout=REDIS_TIMEOUT_SECONDS,
        socket_timeout=REDIS_TIMEOUT_SECONDS,
    )
    return aioredis.Redis(connection_pool=pool)


def get_async_redis_client() -> aioredis.Redis:
    """Shared client; the pool opens its first connection lazily."""
    global _redis_client
    if _redis_client is None:
        _redis_client = _build_client(get_settings())
    return _redis_client


async def close_redis_client() -> None:
    """Close the shared client, if one was created. Called on shutdown."""
    global _redis_client
    if _redis_client is None:
        return
    try:
        await _redis_client.aclose()
        logger.info("Redis connection closed")
    except RedisError as e:
        logger.error(f"Error closing Redis connection: {e}")
    finally:
        _redis_client = None


async def health_check() -> str:
    """
    Returns:
        "connected", "disconnected", or "disabled" when Redis isn't used
    """
    if not get_settings().redis_cancellation_enabled:
        return "disabled"
    try:
        await get_async_redis_client().ping()
        return "connected"
    except (RedisError, OSError) as e:
        logger.error(f"Redis health check failed: {e}")
        return "disconnected"
