"""
Redis client configuration and connection management.
"""

import asyncio
from typing import Optional, Any, Dict, List, Union
import redis.asyncio as redis
from redis.asyncio import Redis

from burn_tracker.core.config import settings

import structlog

logger = structlog.get_logger(__name__)


class RedisClient:
    """Async Redis client wrapper with connection management."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.redis_url
        self._client: Optional[Redis] = None
        self._pool: Optional[redis.ConnectionPool] = None

    async def connect(self) -> None:
        """Establish Redis connection."""
        try:
            if self._client is None:
                self._pool = redis.ConnectionPool.from_url(
                    self.url,
                    decode_responses=True,
                    max_connections=20,
                    retry_on_timeout=True,
                    socket_keepalive=True,
                )
                self._client = Redis(connection_pool=self._pool)

                # Test connection
                await self._client.ping()
                logger.info("Redis connection established", url=self.url)

        except Exception as e:
            logger.error("Failed to connect to Redis", url=self.url, error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close Redis connection."""
        try:
            if self._client:
                await self._client.aclose()
                self._client = None
                logger.info("Redis connection closed")
        except Exception as e:
            logger.error("Error closing Redis connection", error=str(e))

    @property
    def client(self) -> Redis:
        """Get Redis client instance."""
        if self._client is None:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    async def health_check(self) -> Dict[str, Any]:
        """Check Redis connection health."""
        try:
            if self._client is None:
                return {"status": "disconnected", "error": "No connection"}

            start_time = asyncio.get_running_loop().time()
            result = await self._client.ping()
            ping_time = (asyncio.get_running_loop().time() - start_time) * 1000

            return {
                "status": "healthy" if result else "unhealthy",
                "ping_ms": round(ping_time, 2),
            }
        except Exception as e:
            return {"status": "error", "error": str(e)}

    async def get(self, key: str) -> Optional[str]:
        """Get value by key."""
        return await self.client.get(key)

    async def set(self, key: str, value: Union[str, bytes, int, float], ex: Optional[int] = None) -> bool:
        """Set key-value with optional expiration."""
        return await self.client.set(key, value, ex=ex)

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        """Get several values in one round trip."""
        if not keys:
            return []
        return await self.client.mget(keys)
