"""Redis connection backing the login session store."""
from typing import Optional
import redis.asyncio as redis

from .config import settings


class RedisClient:
    """Async Redis wrapper exposing the key operations sessions need."""

    def __init__(self, url: Optional[str] = None):
        self._url = url or settings.redis_url
        self._client: Optional[redis.Redis] = None

    async def connect(self):
        """Initialize Redis connection."""
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True
            )

    async def disconnect(self):
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def set(
        self,
        key: str,
        value: str,
        ex: Optional[int] = None
    ):
        """
        Store a value, expiring it after ``ex`` seconds when given.

        Args:
            key: Session key
            value: Value to store
            ex: Expiration time in seconds
        """
        await self.connect()
        await self._client.set(key, value, ex=ex)

    async def delete(self, key: str):
        """Delete a key; a missing key is not an error."""
        await self.connect()
        await self._client.delete(key)

    async def exists(self, key: str) -> bool:
        """Check if key exists."""
        await self.connect()
        return bool(await self._client.exists(key))

    async def ping(self) -> bool:
        """Check if Redis is accessible."""
        try:
            await self.connect()
            return await self._client.ping()
        except Exception:
            return False


# Singleton instance
redis_client = RedisClient()


async def get_redis() -> RedisClient:
    """Dependency for FastAPI."""
    await redis_client.connect()
    return redis_client
