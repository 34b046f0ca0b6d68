"""
Per-token burn calculation across all trailing windows.

Failure handling is a small state machine:

    ATTEMPT(endpoint) -> SUCCESS
                      -> FAILOVER(new endpoint)   at most once
                      -> GIVE_UP                  returns None

Retries against the same endpoint happen inside RateLimitedRetrier.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from burn_tracker.core.config import ChainConfig, settings
from burn_tracker.core.exceptions import BlockUnavailableError, TokenDecimalsError
from burn_tracker.core.tokens import TokenRegistry
from burn_tracker.models.burn import BlockRef, BurnRecord, BurnWindow, Token
from burn_tracker.services.block_resolver import BlockTimeResolver
from burn_tracker.services.burn_aggregator import BurnLogAggregator, scale_amount
from burn_tracker.services.provider_pool import Endpoint, ProviderPool
from burn_tracker.services.retrier import RateLimitedRetrier


logger = structlog.get_logger(__name__)


class CalculationStep(Enum):
    ATTEMPT = "attempt"
    SUCCESS = "success"
    FAILOVER = "failover"
    GIVE_UP = "give_up"


class TokenBurnCalculator:
    """Orchestrates block resolution and log aggregation for one token."""

    def __init__(
        self,
        pool: ProviderPool,
        retrier: RateLimitedRetrier,
        resolver: BlockTimeResolver,
        aggregator: BurnLogAggregator,
        tokens: Optional[TokenRegistry] = None,
        burn_addresses: Optional[List[str]] = None,
        max_failovers: int = 1,
        call_delay_ms: Optional[int] = None,
        next_update_minutes: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.pool = pool
        self.retrier = retrier
        self.resolver = resolver
        self.aggregator = aggregator
        self.tokens = tokens or TokenRegistry()
        self.burn_addresses = burn_addresses or ChainConfig.BURN_ADDRESSES
        self.max_failovers = max_failovers
        self.call_delay_ms = settings.rate_limit_delay_ms if call_delay_ms is None else call_delay_ms
        self.next_update_minutes = (
            settings.next_update_minutes if next_update_minutes is None else next_update_minutes
        )
        self._sleep = sleep
        self.logger = logger.bind(service="burn_calculator")

    async def compute(self, symbol: str, endpoint: Endpoint) -> Optional[BurnRecord]:
        """
        Calculate burn data for a token.

        Returns None when the token is unknown or no endpoint could
        complete the calculation; never raises for those cases.
        """
        token = self.tokens.get(symbol)
        if token is None:
            self.logger.error("Invalid token", token=symbol)
            return None

        current = endpoint
        failovers = 0
        step = CalculationStep.ATTEMPT
        claimed: List[Endpoint] = []

        try:
            while step in (CalculationStep.ATTEMPT, CalculationStep.FAILOVER):
                self.logger.info(
                    "Starting burn calculation",
                    token=token.symbol,
                    endpoint=current.display_url,
                    step=step.value
                )
                try:
                    record = await self._calculate(token, current)
                except Exception as e:
                    self.logger.error(
                        "Burn calculation failed",
                        token=token.symbol,
                        endpoint=current.display_url,
                        error_type=type(e).__name__,
                        error=str(e)
                    )
                    replacement = None
                    if failovers < self.max_failovers:
                        replacement = await self.pool.acquire_replacement(
                            exclude={endpoint.url} | {ep.url for ep in claimed}
                        )

                    if replacement is None:
                        step = CalculationStep.GIVE_UP
                    else:
                        claimed.append(replacement)
                        failovers += 1
                        self.logger.warning(
                            "Failing over to another endpoint",
                            token=token.symbol,
                            from_endpoint=current.display_url,
                            to_endpoint=replacement.display_url
                        )
                        current = replacement
                        step = CalculationStep.FAILOVER
                    continue

                step = CalculationStep.SUCCESS
                self.logger.info(
                    "Burn calculation completed",
                    token=token.symbol,
                    endpoint=current.display_url,
                    failovers=failovers,
                    burn24h=record.burns[BurnWindow.TWENTY_FOUR_HOURS]
                )
                return record
        finally:
            self.pool.release(claimed)

        self.logger.error("Giving up on token for this cycle", token=token.symbol, failovers=failovers)
        return None

    async def _calculate(self, token: Token, endpoint: Endpoint) -> BurnRecord:
        client = endpoint.client

        latest_block = await self.retrier.execute(client.get_block_number, description="get_block_number")
        decimals = await self._fetch_decimals(client, token)
        head = await self._fetch_head(client, latest_block)

        raw_burns: Dict[BurnWindow, int] = {}
        upper_bound = head.number
        for window in BurnWindow:
            target_timestamp = head.timestamp - window.seconds
            start_block = await self.resolver.resolve(client, target_timestamp, upper_bound)
            await self._sleep(self.call_delay_ms / 1000)

            raw_burns[window] = await self.aggregator.sum_burns(
                client, token.address, self.burn_addresses, start_block, head.number
            )
            await self._sleep(self.call_delay_ms * 2 / 1000)

            # windows are nested, so a longer window starts no later than this one
            upper_bound = start_block

        now = datetime.now(timezone.utc)
        return BurnRecord(
            address=token.address,
            symbol=token.symbol,
            decimals=decimals,
            latest_block=head.number,
            burns={window: scale_amount(raw, decimals) for window, raw in raw_burns.items()},
            raw_burns=raw_burns,
            last_updated=now,
            next_update=now + timedelta(minutes=self.next_update_minutes),
        )

    async def _fetch_decimals(self, client, token: Token) -> int:
        try:
            return await self.retrier.execute(
                lambda: client.get_decimals(token.address),
                description="decimals"
            )
        except Exception as e:
            raise TokenDecimalsError(token.symbol, str(e)) from e

    async def _fetch_head(self, client, latest_block: int) -> BlockRef:
        """Head block, or its parent when the head has not propagated yet."""
        for number in (latest_block, latest_block - 1):
            if number < 1:
                break
            block = await self.retrier.execute(
                lambda: client.get_block(number),
                description=f"get_block({number})"
            )
            if block is not None:
                return block
            self.logger.warning("Block not yet available", block=number)
        raise BlockUnavailableError(latest_block)
