"""
Cross-worker cancellation flags using Redis.

The worker that receives a cancel request interrupts its own task directly;
the flag lets a task running in another worker notice the request between
phases. Redis being unavailable degrades to local-only cancellation.
"""
import logging

from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.redis import get_async_redis_client

logger = logging.getLogger(__name__)


def _get_cancel_key(session_id: str) -> str:
    """Get Redis key for cancellation flag."""
    return f"generation:{session_id}:cancel"


async def set_cancellation_flag(session_id: str) -> None:
    """
    Set cancellation flag for a running generation.

    Args:
        session_id: Generation session id
    """
    settings = get_settings()
    if not settings.redis_cancellation_enabled:
        return

    try:
        redis = get_async_redis_client()
        await redis.set(_get_cancel_key(session_id), "1", ex=settings.cancellation_flag_ttl)
        logger.info(f"Set cancellation flag for {session_id}")
    except (RedisError, OSError) as e:
        logger.warning(f"Could not set cancellation flag for {session_id}: {e}")


async def check_cancellation(session_id: str) -> bool:
    """
    Check if cancellation was requested.
    Called by the runner between project phases.

    Returns:
        True if cancellation was requested
    """
    if not get_settings().redis_cancellation_enabled:
        return False

    try:
        redis = get_async_redis_client()
        return await redis.exists(_get_cancel_key(session_id)) > 0
    except (RedisError, OSError) as e:
        logger.warning(f"Could not check cancellation flag for {session_id}: {e}")
        return False


async def clear_cancellation(session_id: str) -> None:
    """Clear cancellation flag after handling."""
    if not get_settings().redis_cancellation_enabled:
        return

    try:
        redis = get_async_redis_client()
        await redis.delete(_get_cancel_key(session_id))
        logger.info(f"Cleared cancellation flag for {session_id}")
    except (RedisError, OSError) as e:
        logger.warning(f"Could not clear cancellation flag for {session_id}: {e}")
