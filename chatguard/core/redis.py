"""
Sync Redis client for the reputation ledger.

The engine is synchronous (evaluation is CPU-bound with a single ledger
round-trip), so it uses the blocking redis-py client rather than the asyncio
one. Connection is lazy; nothing talks to Redis until the Redis ledger
backend is selected and first used.
"""

import logging
from typing import Optional

from redis import Redis

from chatguard.core.config import get_settings

logger = logging.getLogger(__name__)

_redis_client: Optional[Redis] = None


def get_redis() -> Redis:
    """Lazy-init sync Redis client."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        logger.info("Redis client created for %s", settings.redis_url)
    return _redis_client


def close_redis() -> None:
    """Close the Redis client if one was created."""
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class LedgerKeys:
    """Redis key patterns for reputation ledger records."""

    @staticmethod
    def user_status(user_id: str) -> str:
        """Key for a user's moderation status record."""
        return f"moderation:user:{user_id}:status"
