"""Redis client connection."""

from redis.asyncio import Redis
from redis.exceptions import RedisError

from earnpulse.core.exceptions import RedisConnectionError
from earnpulse.core.logging import get_logger

logger = get_logger(__name__)

# Global Redis instance (initialized in lifespan)
_redis: Redis | None = None


def get_redis() -> Redis:
    """Get the global Redis instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized")
    return _redis


async def init_redis(redis_url: str) -> Redis:
    """Initialize the global Redis instance.

    Raises:
        RedisConnectionError: If the server does not answer PING
    """
    global _redis
    client = Redis.from_url(redis_url, decode_responses=False)
    # Test connection before exposing the client
    try:
        await client.ping()  # type: ignore[misc]
    except (OSError, RedisError) as e:
        await client.aclose()
        raise RedisConnectionError(f"Failed to connect to Redis: {e}") from e
    _redis = client
    logger.info("Redis connected")
    return _redis


async def close_redis() -> None:
    """Close the global Redis instance."""
    global _redis
    if _redis:
        await _redis.aclose()
        logger.info("Redis disconnected")
        _redis = None
