"""
Redis connection for the distributed trip lease.

Only used when TRIP_LEASE_BACKEND=redis; the in-process lease never
touches it.
"""

import logging
import redis.asyncio as redis
from redis.exceptions import RedisError
from freight_backend.app.core.config import settings

logger = logging.getLogger("freight.redis")


# Connects lazily on first command
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
    health_check_interval=30,
)


async def get_redis():
    """FastAPI dependency returning the shared client."""
    return redis_client


async def ping_redis() -> bool:
    """True when Redis answers; failures are logged, not raised."""
    try:
        return bool(await redis_client.ping())
    except (RedisError, OSError) as e:
        logger.warning("Redis ping failed: %s", e)
        return False


async def close_redis() -> None:
    await redis_client.aclose()
