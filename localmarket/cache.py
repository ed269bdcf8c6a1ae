"""Cache management module."""
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from localmarket.config import settings
from localmarket.logger import logger


class CacheManager:
    """A class to manage the Redis cache.

    Le cache est facultatif : une panne Redis est journalisée puis ignorée,
    l'appelant retombe sur la source de données.
    """

    def __init__(self, redis_url: Optional[str] = None):
        """Initialize the CacheManager."""
        self.redis_url = redis_url or settings.REDIS_URL
        self.redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        """Get a value from the cache."""
        try:
            return await self.redis.get(key)
        except RedisError as e:
            logger.warning("Cache read failed for {key}: {error}", key=key, error=e)
            return None

    async def set(self, key: str, value: str, expire: int = 300):
        """Set a value in the cache."""
        try:
            await self.redis.set(key, value, ex=expire)
        except RedisError as e:
            logger.warning("Cache write failed for {key}: {error}", key=key, error=e)

    async def ping(self) -> bool:
        await self.redis.ping()
        return True

    async def close(self):
        """Close the Redis connection."""
        await self.redis.aclose()


cache_manager = CacheManager()
