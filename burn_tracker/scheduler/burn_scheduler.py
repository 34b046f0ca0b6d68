"""
Burn data scheduler.

This service provides:
- Fixed-interval runs aligned to the wall clock (every 5 minutes by default)
- Or a single daily run at a configurable UTC hour
- Optional immediate run on startup
- Manual trigger guarded against overlapping runs
- Status reporting for the API
"""

import asyncio
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, List, Optional
from dataclasses import dataclass
from enum import Enum
import structlog

from burn_tracker.core.config import settings
from burn_tracker.core.exceptions import JobAlreadyRunningError
from burn_tracker.models.burn import JobRunResult
from burn_tracker.services.fleet_processor import FleetProcessor


logger = structlog.get_logger(__name__)


class SchedulerStatus(Enum):
    """Status of the burn scheduler."""
    STOPPED = "stopped"
    WAITING = "waiting"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class SchedulerStats:
    """Statistics for scheduler operations."""
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    skipped_runs: int = 0
    uptime_start: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "total_runs": self.total_runs,
            "successful_runs": self.successful_runs,
            "failed_runs": self.failed_runs,
            "skipped_runs": self.skipped_runs,
            "uptime_start": self.uptime_start.isoformat() if self.uptime_start else None,
        }


def calculate_next_run(
    now: datetime,
    mode: str,
    interval_seconds: int,
    utc_hour: int
) -> datetime:
    """
    Next run time strictly after now.

    interval mode: next multiple of interval_seconds since the epoch
    daily mode: next occurrence of utc_hour:00 UTC
    """
    if mode == "daily":
        next_run = now.replace(hour=utc_hour, minute=0, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)
        return next_run

    epoch_seconds = int(now.timestamp())
    next_tick = (epoch_seconds // interval_seconds + 1) * interval_seconds
    return datetime.fromtimestamp(next_tick, tz=timezone.utc)


class BurnScheduler:
    """
    Runs the fleet on a fixed schedule.

    The loop computes the next run time, sleeps until then and runs the
    job; the schedule does not depend on whether the job succeeded.
    """

    def __init__(
        self,
        fleet: FleetProcessor,
        enabled: Optional[bool] = None,
        mode: Optional[str] = None,
        interval_seconds: Optional[int] = None,
        utc_hour: Optional[int] = None,
        run_on_startup: Optional[bool] = None
    ):
        self.logger = logger.bind(service="burn_scheduler")
        self.fleet = fleet

        self.enabled = settings.scheduler_enabled if enabled is None else enabled
        self.mode = mode or settings.scheduler_mode
        self.interval_seconds = interval_seconds or settings.scheduler_interval
        self.utc_hour = settings.scheduler_utc_hour if utc_hour is None else utc_hour
        self.run_on_startup = settings.run_on_startup if run_on_startup is None else run_on_startup

        self.status = SchedulerStatus.STOPPED
        self.stats = SchedulerStats(uptime_start=datetime.now(timezone.utc))
        self.last_results: List[JobRunResult] = []
        self._should_stop = False
        self._scheduler_task: Optional[asyncio.Task] = None
        self._manual_task: Optional[asyncio.Task] = None

        self.logger.info(
            "Burn scheduler initialized",
            enabled=self.enabled,
            mode=self.mode,
            interval_seconds=self.interval_seconds,
            utc_hour=self.utc_hour
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def _calculate_next_run_time(self) -> datetime:
        return calculate_next_run(
            datetime.now(timezone.utc),
            self.mode,
            self.interval_seconds,
            self.utc_hour
        )

    async def start(self):
        """Start the scheduler loop."""
        if not self.enabled:
            self.logger.info("Burn scheduler is disabled")
            return

        if self.status != SchedulerStatus.STOPPED:
            self.logger.warning("Scheduler already running", current_status=self.status.value)
            return

        self._should_stop = False
        self.status = SchedulerStatus.WAITING
        self.stats.next_run = self._calculate_next_run_time()
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())

        self.logger.info("Burn scheduler started", next_run=self.stats.next_run.isoformat())

    async def stop(self):
        """Stop the scheduler loop and any manual run in flight."""
        if self.status == SchedulerStatus.STOPPED and self._manual_task is None:
            return

        self.logger.info("Stopping burn scheduler")
        self._should_stop = True

        for task in (self._scheduler_task, self._manual_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._scheduler_task = None
        self._manual_task = None
        self.status = SchedulerStatus.STOPPED
        self.logger.info("Burn scheduler stopped")

    async def _scheduler_loop(self):
        """Main scheduler loop."""
        self.logger.info("Scheduler loop started")

        if self.run_on_startup:
            await self._run_job(trigger="startup")

        while not self._should_stop:
            try:
                self.stats.next_run = self._calculate_next_run_time()
                self.status = SchedulerStatus.WAITING
                delay = (self.stats.next_run - datetime.now(timezone.utc)).total_seconds()
                await asyncio.sleep(max(delay, 0))

                await self._run_job(trigger="schedule")

            except asyncio.CancelledError:
                self.logger.info("Scheduler loop cancelled")
                break
            except Exception as e:
                self.status = SchedulerStatus.ERROR
                self.logger.error("Scheduler loop error", error=str(e))
                await asyncio.sleep(60)

    async def _run_job(self, trigger: str) -> List[JobRunResult]:
        """Run the fleet once; failures are logged, never raised."""
        if self.fleet.is_running:
            self.stats.skipped_runs += 1
            self.logger.warning("Burn run already active, skipping", trigger=trigger)
            return []

        self.status = SchedulerStatus.PROCESSING
        self.stats.total_runs += 1
        self.stats.last_run = datetime.now(timezone.utc)
        self.logger.info("Burn job started", trigger=trigger)

        try:
            results = await self.fleet.run_all()
        except JobAlreadyRunningError:
            self.stats.skipped_runs += 1
            self.logger.warning("Burn run already active, skipping", trigger=trigger)
            return []
        except Exception as e:
            self.stats.failed_runs += 1
            self.status = SchedulerStatus.ERROR
            self.logger.error("Burn job failed", trigger=trigger, error=str(e))
            return []

        self.last_results = results
        if results and any(r.success for r in results):
            self.stats.successful_runs += 1
        else:
            self.stats.failed_runs += 1
        self.status = SchedulerStatus.WAITING

        self.logger.info(
            "Burn job finished",
            trigger=trigger,
            succeeded=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success)
        )
        return results

    def trigger_manual_run(self) -> asyncio.Task:
        """
        Start a run in the background.

        Raises:
            JobAlreadyRunningError: if a run is already active
        """
        if self.fleet.is_running or (self._manual_task and not self._manual_task.done()):
            raise JobAlreadyRunningError(
                self.stats.last_run.isoformat() if self.stats.last_run else None
            )

        self._manual_task = asyncio.create_task(self._run_job(trigger="manual"))
        return self._manual_task

    def get_status(self) -> Dict[str, Any]:
        """Get current scheduler status."""
        next_run_in = None
        if self.stats.next_run and self.status != SchedulerStatus.STOPPED:
            next_run_in = (self.stats.next_run - datetime.now(timezone.utc)).total_seconds()

        return {
            "status": self.status.value,
            "enabled": self.enabled,
            "mode": self.mode,
            "interval_seconds": self.interval_seconds,
            "utc_hour": self.utc_hour,
            "job_running": self.fleet.is_running,
            "stats": self.stats.to_dict(),
            "next_run_in_seconds": next_run_in,
            "last_run": self.fleet.stats.to_dict(),
            "last_results": [
                {"token": r.token, "success": r.success, "error": r.error}
                for r in self.last_results
            ],
        }
