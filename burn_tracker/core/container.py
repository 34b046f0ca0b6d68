"""
Service wiring shared by the API server and the headless worker.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from burn_tracker.cache import BurnStore, RedisBurnStore, RedisClient
from burn_tracker.core.config import Settings, settings as default_settings
from burn_tracker.core.tokens import TokenRegistry
from burn_tracker.scheduler.burn_scheduler import BurnScheduler
from burn_tracker.services.block_resolver import BlockTimeResolver
from burn_tracker.services.burn_aggregator import BurnLogAggregator
from burn_tracker.services.burn_calculator import TokenBurnCalculator
from burn_tracker.services.fleet_processor import FleetProcessor
from burn_tracker.services.provider_pool import ProviderPool
from burn_tracker.services.retrier import RateLimitedRetrier


logger = structlog.get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    tokens: TokenRegistry
    store: BurnStore
    pool: ProviderPool
    fleet: FleetProcessor
    scheduler: BurnScheduler
    redis: Optional[RedisClient] = None

    async def close(self):
        """Stop the scheduler and release connections."""
        await self.scheduler.stop()
        await self.pool.close()
        if self.redis is not None:
            await self.redis.disconnect()
        logger.info("Services closed")


def build_burn_pipeline(
    pool: ProviderPool,
    store: BurnStore,
    tokens: TokenRegistry,
    config: Settings
) -> FleetProcessor:
    """Wire retrier, resolver, aggregator and calculator into a fleet."""
    retrier = RateLimitedRetrier(
        max_retries=config.rpc_max_retries,
        base_delay_ms=config.rpc_retry_delay_ms
    )
    resolver = BlockTimeResolver(retrier, call_delay_ms=config.rate_limit_delay_ms)
    aggregator = BurnLogAggregator(retrier, call_delay_ms=config.rate_limit_delay_ms)
    calculator = TokenBurnCalculator(
        pool=pool,
        retrier=retrier,
        resolver=resolver,
        aggregator=aggregator,
        tokens=tokens,
        call_delay_ms=config.rate_limit_delay_ms,
        next_update_minutes=config.next_update_minutes
    )
    return FleetProcessor(
        pool=pool,
        calculator=calculator,
        store=store,
        tokens=tokens,
        concurrency=config.worker_concurrency,
        token_delay_ms=config.token_delay_ms,
        token_timeout_seconds=config.token_timeout_seconds
    )


async def build_container(config: Optional[Settings] = None) -> ServiceContainer:
    """Connect to Redis and build every service from settings."""
    config = config or default_settings

    redis_client = RedisClient(config.redis_url)
    await redis_client.connect()

    tokens = TokenRegistry()
    store = RedisBurnStore(redis_client, prefix=config.redis_prefix)
    pool = ProviderPool.from_settings(config)
    fleet = build_burn_pipeline(pool, store, tokens, config)
    scheduler = BurnScheduler(
        fleet,
        enabled=config.scheduler_enabled,
        mode=config.scheduler_mode,
        interval_seconds=config.scheduler_interval,
        utc_hour=config.scheduler_utc_hour,
        run_on_startup=config.run_on_startup
    )

    logger.info("Services initialized", tokens=len(tokens), endpoints=len(pool.endpoints))
    return ServiceContainer(
        settings=config,
        tokens=tokens,
        store=store,
        pool=pool,
        fleet=fleet,
        scheduler=scheduler,
        redis=redis_client
    )
