"""
Redis utilities for short-lived JSON state
Backs the onboarding progress store so a wizard survives a reload
"""
import json
import logging
from typing import Any, Optional

import redis

from .config import REDIS_URL

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """
    Get or create the Redis client
    Raises when REDIS_URL is missing or the server is unreachable
    """
    global redis_client

    if redis_client is None:
        if not REDIS_URL:
            raise RuntimeError("REDIS_URL not configured")

        # Mask password in URL for logging
        if "@" in REDIS_URL:
            url_parts = REDIS_URL.split("@")
            protocol = url_parts[0].split(":")[0]
            masked_url = f"{protocol}:****@{url_parts[1]}"
        else:
            masked_url = "****"
        logger.info(f"📡 Using Redis URL connection: {masked_url}")

        try:
            client = redis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=15,
                socket_timeout=30,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=20,
            )
            client.ping()
            redis_client = client
            logger.info("Redis connected successfully via URL")
        except Exception as e:
            logger.error(f"❌ Failed to connect to Redis via URL: {str(e)}")
            raise

    return redis_client


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis_client = client

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def is_available(self) -> bool:
        return self._get_client() is not None

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache; corrupt payloads count as a miss"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

        if not value:
            logger.debug(f"❌ Cache MISS: {key}")
            return None

        try:
            logger.debug(f"✅ Cache HIT: {key}")
            return json.loads(value)
        except (TypeError, ValueError) as e:
            logger.warning(f"⚠️ Discarding unreadable cache value for {key}: {e}")
            return None

    def get_raw(self, key: str) -> Optional[str]:
        """Get the stored string without decoding it"""
        client = self._get_client()
        if not client:
            return None

        try:
            return client.get(key)
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        return self.set_raw(key, json.dumps(value), ttl)

    def set_raw(self, key: str, value: str, ttl: int = 3600) -> bool:
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, value)
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False


# Global cache instance
cache = Cache()
