"""
Bounded exponential-backoff retry for remote calls.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import aiohttp
import structlog

from burn_tracker.core.config import settings
from burn_tracker.core.exceptions import RateLimitError, RetryError, TransientRpcError


logger = structlog.get_logger(__name__)

T = TypeVar("T")

RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "429")
TRANSIENT_MARKERS = ("timeout", "timed out", "connection reset", "econnreset", "network")


class ErrorKind(Enum):
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        return self is not ErrorKind.FATAL


def _status_code(error: BaseException) -> Optional[int]:
    for attr in ("status", "status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_error(error: BaseException) -> ErrorKind:
    """Decide whether a failed remote call is worth retrying."""
    if isinstance(error, RateLimitError) or _status_code(error) == 429:
        return ErrorKind.RATE_LIMITED
    if isinstance(error, (
        TransientRpcError,
        asyncio.TimeoutError,
        ConnectionError,
        aiohttp.ClientConnectionError,
        aiohttp.ServerTimeoutError,
    )):
        return ErrorKind.TRANSIENT

    message = str(error).lower()
    if any(marker in message for marker in RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    if any(marker in message for marker in TRANSIENT_MARKERS):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


class RateLimitedRetrier:
    """Retries rate-limited and transient failures with doubling delays."""

    def __init__(
        self,
        max_retries: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.max_retries = settings.rpc_max_retries if max_retries is None else max_retries
        self.base_delay_ms = settings.rpc_retry_delay_ms if base_delay_ms is None else base_delay_ms
        self._sleep = sleep
        self.logger = logger.bind(service="retrier")

    def compute_delay(self, retry: int) -> int:
        """Backoff in milliseconds before the given retry (1-indexed)."""
        return self.base_delay_ms * 2 ** (retry - 1)

    async def execute(self, operation: Callable[[], Awaitable[T]], description: str = "rpc call") -> T:
        """
        Run operation, retrying retryable failures.

        Args:
            operation: Zero-argument callable returning an awaitable
            description: Label used in log events

        Returns:
            The operation's result

        Raises:
            The last error once retries are exhausted, any fatal error
            immediately, or RetryError if no attempt could be made
        """
        total_attempts = self.max_retries + 1
        last_error: Optional[BaseException] = None

        for attempt in range(1, total_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                last_error = e
                kind = classify_error(e)

                if not kind.retryable or attempt == total_attempts:
                    raise

                delay_ms = self.compute_delay(attempt)
                self.logger.warning(
                    "Remote call failed, retrying",
                    operation=description,
                    error_kind=kind.value,
                    attempt=attempt,
                    max_attempts=total_attempts,
                    delay_ms=delay_ms,
                    error=str(e)
                )
                await self._sleep(delay_ms / 1000)

        if last_error is not None:
            raise last_error
        raise RetryError(details={"operation": description, "max_retries": self.max_retries})
