"""
Shared fixtures for burn tracker tests.
"""

import pytest

from burn_tracker.core.tokens import TokenRegistry
from burn_tracker.services.retrier import RateLimitedRetrier

from tests.helpers import TOKEN_ADDRESS, SleepRecorder


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def retrier(sleeper) -> RateLimitedRetrier:
    return RateLimitedRetrier(max_retries=3, base_delay_ms=2000, sleep=sleeper)


@pytest.fixture
def token_registry() -> TokenRegistry:
    return TokenRegistry({"ABC": TOKEN_ADDRESS, "xyz": "0x3333333333333333333333333333333333333333"})
