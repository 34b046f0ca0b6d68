"""
Runs burn calculations for the whole token table across healthy providers.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import structlog

from burn_tracker.core.config import settings
from burn_tracker.core.exceptions import JobAlreadyRunningError, NoHealthyEndpointsError
from burn_tracker.core.tokens import TokenRegistry
from burn_tracker.models.burn import JobRunResult, RunStats, RunStatus
from burn_tracker.services.burn_calculator import TokenBurnCalculator
from burn_tracker.services.provider_pool import Endpoint, ProviderPool


logger = structlog.get_logger(__name__)


def distribute_tokens(tokens: Sequence[str], worker_count: int) -> List[List[str]]:
    """Round-robin assignment: token i goes to worker i mod worker_count."""
    if worker_count < 1:
        raise ValueError("worker_count must be at least 1")
    return [list(tokens[i::worker_count]) for i in range(worker_count)]


class FleetProcessor:
    """
    One sequential worker per healthy endpoint, all workers concurrent.

    Each token's record is saved as soon as it is computed so a partial
    run still leaves fresh data behind.
    """

    def __init__(
        self,
        pool: ProviderPool,
        calculator: TokenBurnCalculator,
        store,
        tokens: Optional[TokenRegistry] = None,
        concurrency: Optional[int] = None,
        token_delay_ms: Optional[int] = None,
        token_timeout_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.pool = pool
        self.calculator = calculator
        self.store = store
        self.tokens = tokens or TokenRegistry()
        self.concurrency = concurrency or settings.worker_concurrency
        self.token_delay_ms = settings.token_delay_ms if token_delay_ms is None else token_delay_ms
        self.token_timeout_seconds = token_timeout_seconds or settings.token_timeout_seconds
        self._sleep = sleep
        self._run_lock = asyncio.Lock()
        self.stats = RunStats()
        self.logger = logger.bind(service="fleet_processor")

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    async def run_all(self, tokens: Optional[Sequence[str]] = None) -> List[JobRunResult]:
        """
        Calculate and persist burn data for every token.

        Raises:
            JobAlreadyRunningError: if another run is in flight
        """
        if self._run_lock.locked():
            raise JobAlreadyRunningError(
                self.stats.start_time.isoformat() if self.stats.start_time else None
            )

        async with self._run_lock:
            return await self._run(list(tokens) if tokens is not None else self.tokens.symbols)

    async def _run(self, symbols: List[str]) -> List[JobRunResult]:
        self.stats = RunStats(
            status=RunStatus.RUNNING,
            start_time=datetime.now(timezone.utc),
            tokens_total=len(symbols)
        )
        self.logger.info("Starting burn data calculation for all tokens", tokens=len(symbols))

        try:
            endpoints = await self.pool.acquire_healthy(self.concurrency)
        except NoHealthyEndpointsError as e:
            self.stats.status = RunStatus.FAILED
            self.stats.error = e.message
            self.stats.end_time = datetime.now(timezone.utc)
            self.logger.error("Burn run aborted, no usable RPC endpoint", error=e.message)
            return []

        endpoints = endpoints[:self.concurrency]
        self.stats.endpoints_used = [ep.display_url for ep in endpoints]
        assignments = distribute_tokens(symbols, len(endpoints))

        # failover lookups steer clear of endpoints a worker is driving
        self.pool.claim(endpoints)
        try:
            worker_results = await asyncio.gather(*(
                self._worker(index, endpoint, assigned)
                for index, (endpoint, assigned) in enumerate(zip(endpoints, assignments))
            ))
        finally:
            self.pool.release(endpoints)
        results = [result for batch in worker_results for result in batch]

        self.stats.tokens_succeeded = sum(1 for r in results if r.success)
        self.stats.tokens_failed = len(results) - self.stats.tokens_succeeded
        self.stats.status = RunStatus.COMPLETED
        self.stats.end_time = datetime.now(timezone.utc)

        self.logger.info(
            "Completed processing all tokens",
            succeeded=self.stats.tokens_succeeded,
            failed=self.stats.tokens_failed,
            duration=(self.stats.end_time - self.stats.start_time).total_seconds()
        )
        return results

    async def _worker(self, index: int, endpoint: Endpoint, symbols: List[str]) -> List[JobRunResult]:
        worker_logger = self.logger.bind(worker=index + 1, endpoint=endpoint.display_url)
        results: List[JobRunResult] = []

        for symbol in symbols:
            worker_logger.info("Processing token", token=symbol)
            started = time.monotonic()
            result = await self._process_token(symbol, endpoint, worker_logger)
            result.elapsed_seconds = round(time.monotonic() - started, 3)
            result.endpoint = endpoint.display_url
            results.append(result)

            await self._sleep(self.token_delay_ms / 1000)

        return results

    async def _process_token(self, symbol: str, endpoint: Endpoint, worker_logger) -> JobRunResult:
        try:
            record = await asyncio.wait_for(
                self.calculator.compute(symbol, endpoint),
                timeout=self.token_timeout_seconds
            )
        except asyncio.TimeoutError:
            worker_logger.error("Burn calculation timed out", token=symbol, timeout=self.token_timeout_seconds)
            return JobRunResult(token=symbol, success=False, error="Timed out calculating burn data")

        if record is None:
            return JobRunResult(token=symbol, success=False, error="Failed to calculate burn data")

        try:
            await self.store.save(symbol, record)
        except Exception as e:
            worker_logger.error("Error saving burn data", token=symbol, error=str(e))
            return JobRunResult(token=symbol, success=False, error=f"Failed to save burn data: {e}")

        worker_logger.info("Saved burn data", token=symbol)
        return JobRunResult(token=symbol, success=True)
