"""
Redis-backed storage for burn records.
"""

from .redis_client import RedisClient
from .burn_store import BurnStore, RedisBurnStore

__all__ = ["RedisClient", "BurnStore", "RedisBurnStore"]
