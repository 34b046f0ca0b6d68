"""
Burn record repository.

The store is the single source of truth for burn data: the fleet writes
one document per token, the API reads them back. Each write replaces
the whole document.
"""

import json
from typing import Any, Dict, Iterable, Optional

from burn_tracker.core.config import settings
from burn_tracker.core.exceptions import StorageError
from burn_tracker.models.burn import BurnRecord

from .redis_client import RedisClient

import structlog

logger = structlog.get_logger(__name__)


class BurnStore:
    """Interface shared by the scheduler, the fleet and the HTTP handlers."""

    async def save(self, symbol: str, record: BurnRecord) -> None:
        raise NotImplementedError

    async def get(self, symbol: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def get_many(self, symbols: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        raise NotImplementedError

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "unknown"}


class RedisBurnStore(BurnStore):
    """Stores each token's record as a JSON string under a per-token key."""

    def __init__(self, redis_client: RedisClient, prefix: Optional[str] = None):
        self.redis = redis_client
        self.prefix = prefix if prefix is not None else settings.redis_prefix

    def key_for(self, symbol: str) -> str:
        return f"{self.prefix}burn:{symbol.lower()}"

    async def save(self, symbol: str, record: BurnRecord) -> None:
        """
        Overwrite a token's record.

        Raises:
            StorageError: if Redis rejects or fails the write
        """
        key = self.key_for(symbol)
        try:
            ok = await self.redis.set(key, json.dumps(record.to_document()))
        except Exception as e:
            raise StorageError(f"Failed to save burn data for {symbol}", {"key": key, "error": str(e)}) from e
        if not ok:
            raise StorageError(f"Redis refused burn data for {symbol}", {"key": key})

        logger.debug("Burn record saved", key=key)

    async def get(self, symbol: str) -> Optional[Dict[str, Any]]:
        key = self.key_for(symbol)
        try:
            raw = await self.redis.get(key)
        except Exception as e:
            logger.error("Error getting cached burn data", key=key, error=str(e))
            return None
        return self._decode(key, raw)

    async def get_many(self, symbols: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        symbols = [symbol.lower() for symbol in symbols]
        keys = [self.key_for(symbol) for symbol in symbols]
        try:
            values = await self.redis.mget(keys)
        except Exception as e:
            logger.error("Error getting cached burn data", keys=len(keys), error=str(e))
            return {}

        documents = {}
        for symbol, key, raw in zip(symbols, keys, values):
            document = self._decode(key, raw)
            if document is not None:
                documents[symbol] = document
        return documents

    async def health_check(self) -> Dict[str, Any]:
        return await self.redis.health_check()

    @staticmethod
    def _decode(key: str, raw: Optional[str]) -> Optional[Dict[str, Any]]:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error("Corrupt burn record", key=key, error=str(e))
            return None
