"""
Sums burn Transfer events for a token over a block range.
"""

import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog

from burn_tracker.core.config import settings
from burn_tracker.services.retrier import RateLimitedRetrier
from burn_tracker.services.rpc_client import decode_transfer_value


logger = structlog.get_logger(__name__)


def scale_amount(raw_amount: int, decimals: int) -> float:
    """Convert a smallest-unit integer into a token amount."""
    if raw_amount == 0:
        return 0.0
    return float(Decimal(raw_amount).scaleb(-decimals))


class BurnLogAggregator:
    """Fetches and decodes burn logs, one eth_getLogs call per burn address."""

    def __init__(
        self,
        retrier: RateLimitedRetrier,
        call_delay_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.retrier = retrier
        self.call_delay_ms = settings.rate_limit_delay_ms if call_delay_ms is None else call_delay_ms
        self._sleep = sleep
        self.logger = logger.bind(service="burn_aggregator")

    async def sum_burns(
        self,
        client,
        token_address: str,
        burn_addresses: Iterable[str],
        from_block: int,
        to_block: int
    ) -> int:
        """
        Total raw value transferred to the burn addresses in [from_block, to_block].

        A burn address whose query fails even after retries contributes
        zero; undecodable entries are skipped.
        """
        total = 0

        for burn_address in burn_addresses:
            try:
                logs = await self.retrier.execute(
                    lambda: client.get_transfer_logs(token_address, burn_address, from_block, to_block),
                    description="get_logs"
                )
            except Exception as e:
                self.logger.error(
                    "Error fetching logs for burn address",
                    token_address=token_address,
                    burn_address=burn_address,
                    from_block=from_block,
                    to_block=to_block,
                    error=str(e)
                )
                logs = []

            await self._sleep(self.call_delay_ms / 1000)

            for log in logs:
                try:
                    total += decode_transfer_value(log)
                except Exception as e:
                    self.logger.error(
                        "Log parsing error",
                        token_address=token_address,
                        tx_hash=str(log.get("transactionHash")),
                        error=str(e)
                    )

        return total
