"""
Timestamp -> block number resolution by binary search over block numbers.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

from burn_tracker.core.config import settings
from burn_tracker.services.retrier import RateLimitedRetrier


logger = structlog.get_logger(__name__)


class BlockTimeResolver:
    """
    Finds the latest block at or before a timestamp using only
    "get block by number".

    Each midpoint fetch goes through the retrier on its own, so a rate
    limit halfway through the search retries that fetch and keeps the
    converged bounds.
    """

    def __init__(
        self,
        retrier: RateLimitedRetrier,
        call_delay_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.retrier = retrier
        self.call_delay_ms = settings.rate_limit_delay_ms if call_delay_ms is None else call_delay_ms
        self._sleep = sleep
        self.logger = logger.bind(service="block_resolver")

    async def resolve(self, client, target_timestamp: int, upper_bound_block: int) -> int:
        """
        Get the greatest block b in [1, upper_bound_block] with
        timestamp(b) <= target_timestamp, or 1 if there is none.

        A block the node cannot return (or returns without a timestamp)
        is treated as later than the target.
        """
        left, right = 1, upper_bound_block
        best = 1
        calls = 0

        while left <= right:
            mid = (left + right) // 2
            block = await self.retrier.execute(
                lambda: client.get_block(mid),
                description=f"get_block({mid})"
            )
            calls += 1
            await self._sleep(self.call_delay_ms / 1000)

            if block is not None and block.timestamp <= target_timestamp:
                best = mid
                left = mid + 1
            else:
                right = mid - 1

        self.logger.debug(
            "Resolved block for timestamp",
            target_timestamp=target_timestamp,
            upper_bound=upper_bound_block,
            block=best,
            calls=calls
        )
        return best
