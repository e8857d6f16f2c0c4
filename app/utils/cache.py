"""
Redis cache utility for generated question batches
"""
import redis
import json
import logging
import hashlib
from typing import Optional, Any
from app.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """Redis-based cache; every failure degrades to a cache miss"""

    def __init__(self, redis_url: str = None, enabled: bool = True, default_ttl: int = None):
        self.default_ttl = default_ttl or settings.GENERATION_CACHE_TTL
        self.redis_client = None

        if not enabled:
            logger.info("Caching disabled by configuration")
            return

        try:
            self.redis_client = redis.from_url(
                redis_url or settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
            # Test connection
            self.redis_client.ping()
            logger.info("Redis connection established")
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {str(e)}. Caching disabled.")
            self.redis_client = None

    @property
    def available(self) -> bool:
        return self.redis_client is not None

    def generation_cache_key(self, lesson_text: str, difficulty: str, count: int) -> str:
        """
        Deterministic key for a generation request

        Same lesson text, difficulty and count → same key
        """
        key_string = f"{lesson_text}|{difficulty}|{count}"
        return f"generation:{hashlib.sha256(key_string.encode()).hexdigest()}"

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache, or None on miss or error"""
        if not self.redis_client:
            return None

        try:
            value = self.redis_client.get(key)
            if value:
                logger.info(f"Cache hit: {key}")
                return json.loads(value)
            logger.info(f"Cache miss: {key}")
            return None
        except (redis.RedisError, json.JSONDecodeError) as e:
            logger.error(f"Cache get error: {str(e)}")
            return None

    def set(self, key: str, value: Any, ttl: int = None) -> bool:
        """
        Set value in cache

        Args:
            key: Cache key
            value: Value to cache (must be JSON serializable)
            ttl: Time to live in seconds (default from settings)

        Returns:
            Success status
        """
        if not self.redis_client:
            return False

        try:
            ttl = ttl or self.default_ttl
            self.redis_client.setex(key, ttl, json.dumps(value))
            logger.info(f"Cache set: {key} (TTL: {ttl}s)")
            return True
        except (redis.RedisError, TypeError) as e:
            logger.error(f"Cache set error: {str(e)}")
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache"""
        if not self.redis_client:
            return False

        try:
            self.redis_client.delete(key)
            logger.info(f"Cache delete: {key}")
            return True
        except redis.RedisError as e:
            logger.error(f"Cache delete error: {str(e)}")
            return False


# Global instance
cache_service = CacheService(enabled=settings.CACHE_ENABLED)
