"""
Redis client initialization and connection management.

Redis only holds short-lived auth state (revoked tokens). The dispatch
flow never depends on it: an unreachable Redis is reported by /health
and revocation checks fail open.
"""

import logging
import redis.asyncio as redis
from edrive.app.core.config import settings

logger = logging.getLogger(__name__)


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """True if Redis answered a PING."""
    try:
        return bool(await redis_client.ping())
    except Exception as exc:
        logger.warning("Redis ping failed: %s", exc)
        return False
