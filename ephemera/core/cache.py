"""
Redis cache management.
Provides connection pooling and helper functions for presence and unread counts.

Every helper degrades to a no-op when Redis is unavailable, so the server
keeps working (without caching) in development and in tests.
"""
import json
import logging
from typing import Any, Optional
from redis import asyncio as aioredis
from ephemera.config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    """Redis cache manager with connection pooling."""

    def __init__(self):
        """Initialize Redis connection pool."""
        self.redis: Optional[aioredis.Redis] = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if not settings.redis_url:
            logger.info("[CACHE] No Redis URL provided - running without Redis cache")
            self.redis = None
            return

        try:
            self.redis = aioredis.from_url(
                settings.redis_url,
                password=settings.redis_password if settings.redis_password else None,
                encoding="utf-8",
                decode_responses=True,
                max_connections=50,
            )
            await self.redis.ping()
            logger.info("[CACHE] Connected to Redis successfully")
        except Exception as e:
            logger.warning(f"[CACHE] Could not connect to Redis: {e}; running without cache")
            self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        if not self.redis:
            return None

        value = await self.redis.get(key)
        if value is not None:
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """
        Set value in cache with optional TTL.

        Args:
            key: Cache key
            value: Value to cache (dicts, lists and ints are JSON-encoded)
            ttl: Time to live in seconds

        Returns:
            True if successful
        """
        if not self.redis:
            return False

        value = json.dumps(value)

        if ttl:
            return bool(await self.redis.setex(key, ttl, value))
        return bool(await self.redis.set(key, value))

    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if not self.redis:
            return False

        return bool(await self.redis.delete(key))


# Global cache instance
cache = RedisCache()


async def set_user_presence(user_id: str, status: str, last_seen_at: Optional[str] = None) -> bool:
    """Set user presence status (online/offline)."""
    key = f"presence:{user_id}"
    return await cache.set(
        key,
        {"status": status, "last_seen_at": last_seen_at},
        ttl=settings.cache_presence_ttl
    )


async def get_user_presence(user_id: str) -> Optional[dict]:
    """
    Get user presence entry.

    Returns:
        {"status", "last_seen_at"} or None if nothing is cached
    """
    key = f"presence:{user_id}"
    data = await cache.get(key)
    return data if isinstance(data, dict) else None


# Unread count caching
async def cache_unread_count(user_id: str, room_id: str, count: int) -> bool:
    """
    Cache unread message count for a user in a room.

    Invalidated when the user marks messages as read and when a new
    message arrives in the room.
    """
    key = f"unread:{user_id}:{room_id}"
    return await cache.set(key, count, ttl=settings.cache_unread_ttl)


async def get_cached_unread_count(user_id: str, room_id: str) -> Optional[int]:
    """Get cached unread count, or None on cache miss."""
    key = f"unread:{user_id}:{room_id}"
    count = await cache.get(key)
    return int(count) if count is not None else None


async def invalidate_unread_count_cache(user_id: str, room_id: str) -> bool:
    """Invalidate cached unread count (called when count changes)."""
    key = f"unread:{user_id}:{room_id}"
    return await cache.delete(key)
