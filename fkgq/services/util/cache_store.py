"""
Redis client of the result cache, shared by all concurrent query executions.
"""
from typing import Optional

from redis import asyncio as aioredis

from fkgq.services.config import config
from fkgq.services.util.logutil import LoggingUtil

logger = LoggingUtil.init_logging(
    __name__,
    config.get('logging_level'),
    config.get('logging_format'),
)


def redis_store_configured() -> bool:
    """
    Caching needs to know where the Redis store lives.
    """
    return config.get("REDIS_HOST") is not None and config.get("REDIS_PORT") is not None


class RedisCacheStore:
    """
    Singleton class for accessing the Redis key-value store with expiring entries.
    """
    class _RedisCacheStore:
        def __init__(self, host: str, port: int, password: Optional[str] = None):
            self.client = aioredis.Redis(
                host=host,
                port=port,
                password=password,
                decode_responses=True
            )

        async def get(self, key: str) -> Optional[str]:
            """
            Returns the serialized value stored under a key.
            :param key: str, cache key
            :return: Optional[str], serialized value; None if absent or expired
            """
            return await self.client.get(key)

        async def set(self, key: str, value: str, ttl: int):
            """
            Stores a serialized value under a key, replacing any earlier value and expiry time.
            :param key: str, cache key
            :param value: str, serialized value
            :param ttl: int, time to live, in seconds
            """
            await self.client.set(key, value, ex=ttl)

        async def close(self):
            await self.client.aclose()

    instance = None

    def __init__(
            self,
            host: Optional[str] = None,
            port: Optional[int] = None,
            password: Optional[str] = None
    ):
        # create a new instance if not already created.
        if not RedisCacheStore.instance:
            host = host or config.get("REDIS_HOST")
            port = int(port or config.get("REDIS_PORT", 6379))
            logger.debug(f"Connecting result cache to Redis at '{host}:{port}'")
            RedisCacheStore.instance = RedisCacheStore._RedisCacheStore(
                host=host,
                port=port,
                password=password or config.get("REDIS_PASSWORD")
            )

    def __getattr__(self, item):
        # proxy function calls to the inner object.
        return getattr(self.instance, item)
