"""
Burn calculation data types.
"""

from .burn import (
    BurnWindow,
    EndpointTier,
    RunStatus,
    Token,
    BlockRef,
    BurnRecord,
    JobRunResult,
    RunStats,
)

__all__ = [
    "BurnWindow",
    "EndpointTier",
    "RunStatus",
    "Token",
    "BlockRef",
    "BurnRecord",
    "JobRunResult",
    "RunStats",
]
