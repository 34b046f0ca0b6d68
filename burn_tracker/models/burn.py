"""
Types for burn calculation runs.
"""

from datetime import datetime, timedelta, timezone
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class BurnWindow(Enum):
    """Trailing windows over which burns are aggregated, shortest first."""
    FIVE_MIN = ("5min", 5 * 60)
    FIFTEEN_MIN = ("15min", 15 * 60)
    THIRTY_MIN = ("30min", 30 * 60)
    ONE_HOUR = ("1h", 60 * 60)
    THREE_HOURS = ("3h", 3 * 60 * 60)
    SIX_HOURS = ("6h", 6 * 60 * 60)
    TWELVE_HOURS = ("12h", 12 * 60 * 60)
    TWENTY_FOUR_HOURS = ("24h", 24 * 60 * 60)

    def __init__(self, label: str, seconds: int):
        self.label = label
        self.seconds = seconds

    @property
    def field_name(self) -> str:
        """Key used for this window in the persisted document."""
        return f"burn{self.label}"


class EndpointTier(Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class RunStatus(Enum):
    """Status of the fleet processor."""
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Token:
    symbol: str
    address: str


@dataclass(frozen=True)
class BlockRef:
    number: int
    timestamp: int


@dataclass
class BurnRecord:
    """
    One token's burn amounts for every window.

    Every window is always present; windows that could not be computed
    hold 0 so a partial failure never produces a malformed document.
    """
    address: str
    symbol: str
    decimals: int
    latest_block: int
    burns: Dict[BurnWindow, float] = field(default_factory=dict)
    raw_burns: Dict[BurnWindow, int] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    next_update: Optional[datetime] = None

    def __post_init__(self):
        for window in BurnWindow:
            self.burns.setdefault(window, 0)
            self.raw_burns.setdefault(window, 0)
        if self.next_update is None:
            self.next_update = self.last_updated + timedelta(minutes=5)

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the stored JSON document."""
        document: Dict[str, Any] = {"address": self.address}
        for window in BurnWindow:
            document[window.field_name] = self.burns[window]
        document.update({
            "symbol": self.symbol,
            "decimals": self.decimals,
            "latestBlock": self.latest_block,
            "raw": {window.field_name: str(self.raw_burns[window]) for window in BurnWindow},
            "lastUpdated": self.last_updated.isoformat(),
            "nextUpdate": self.next_update.isoformat(),
        })
        return document


@dataclass
class JobRunResult:
    """Per-token outcome of a run."""
    token: str
    success: bool
    error: Optional[str] = None
    elapsed_seconds: float = 0.0
    endpoint: Optional[str] = None


@dataclass
class RunStats:
    """Statistics for the latest fleet run."""
    status: RunStatus = RunStatus.IDLE
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    tokens_total: int = 0
    tokens_succeeded: int = 0
    tokens_failed: int = 0
    endpoints_used: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success_rate(self) -> float:
        if self.tokens_total == 0:
            return 0.0
        return self.tokens_succeeded / self.tokens_total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "tokens_total": self.tokens_total,
            "tokens_succeeded": self.tokens_succeeded,
            "tokens_failed": self.tokens_failed,
            "success_rate": self.success_rate,
            "endpoints_used": list(self.endpoints_used),
            "error": self.error,
        }
