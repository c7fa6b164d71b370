"""Redis connection and the JSON cache used for directory lookups."""

import json
from typing import Any, cast

import redis
import structlog

from consult_scheduler.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Lazily create the shared Redis client."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=2,
            socket_timeout=2,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """Ping Redis; False on any connection error."""
    try:
        return bool(get_redis_client().ping())
    except redis.RedisError:
        return False


def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class CacheManager:
    """
    Namespaced JSON cache.

    The cache only ever speeds up reads of reference data, so a Redis outage
    degrades to a miss instead of failing the request.
    """

    def __init__(self, redis_client: redis.Redis, namespace: str = "consult_scheduler"):
        """Initialize cache manager with Redis client and key namespace."""
        self.redis = redis_client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get_json(self, key: str) -> Any | None:
        """
        Read and decode a cached value.

        Returns:
            The decoded value, or None on a miss or a cache error
        """
        try:
            value = cast(str | None, self.redis.get(self._key(key)))
        except redis.RedisError as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None
        return json.loads(value) if value else None

    def set_json(self, key: str, value: Any, ttl: int) -> bool:
        """
        Encode and store a value for ``ttl`` seconds.

        UUIDs and dates are stored as strings.

        Returns:
            True if stored
        """
        try:
            self.redis.setex(self._key(key), ttl, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False
        return True
