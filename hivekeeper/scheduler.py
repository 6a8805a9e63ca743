"""
Recurring scheduler for cleanup cycles.

Two loops run side by side: the paging cleanup cycle and the retention sweep
of the repository, each on its own fixed delay. A cycle of either kind never
starts while the previous one of the same kind is still running, including
one left running in its worker thread across a stop and restart.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

import structlog

from hivekeeper.monitoring.metrics import CleanupMetrics
from hivekeeper.service import CleanupSummary, PagingCleanupService, RepositoryCleanupService

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SchedulerStatus:
    """Status information for the scheduler."""
    running: bool
    last_cleanup: Optional[datetime]
    last_repository_cleanup: Optional[datetime]
    total_cleanups: int
    successful_cleanups: int
    failed_cleanups: int
    last_error: Optional[str]
    uptime_seconds: float


class CleanupScheduler:
    """
    Runs cleanup cycles on fixed delays.

    Cycles are blocking, so each one runs in a worker thread while the event
    loop keeps the timers. ``stop()`` returns only once any cycle still
    running in a worker thread has finished.
    """

    def __init__(self, cleanup_service: PagingCleanupService,
                 repository_cleanup_service: Optional[RepositoryCleanupService] = None,
                 delay_seconds: float = 300,
                 repository_cleanup_delay_seconds: float = 86400,
                 dry_run: bool = False,
                 clock: Callable[[], datetime] = utc_now,
                 metrics: Optional[CleanupMetrics] = None,
                 metrics_port: Optional[int] = None):
        self.cleanup_service = cleanup_service
        self.repository_cleanup_service = repository_cleanup_service
        self.delay_seconds = delay_seconds
        self.repository_cleanup_delay_seconds = repository_cleanup_delay_seconds
        self.dry_run = dry_run
        self.clock = clock
        self.metrics = metrics
        self.metrics_port = metrics_port

        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._cleanup_lock = asyncio.Lock()
        self._repository_cleanup_lock = asyncio.Lock()
        self._cleanup_in_flight: Optional[asyncio.Future] = None
        self._repository_cleanup_in_flight: Optional[asyncio.Future] = None
        self._start_time: Optional[datetime] = None
        self._last_cleanup: Optional[datetime] = None
        self._last_repository_cleanup: Optional[datetime] = None
        self._total_cleanups = 0
        self._successful_cleanups = 0
        self._failed_cleanups = 0
        self._last_error: Optional[str] = None

    @classmethod
    def from_config(cls, config, cleanup_service: PagingCleanupService,
                    repository_cleanup_service: Optional[RepositoryCleanupService] = None,
                    metrics: Optional[CleanupMetrics] = None) -> "CleanupScheduler":
        return cls(
            cleanup_service,
            repository_cleanup_service,
            delay_seconds=config.scheduler_delay_seconds,
            repository_cleanup_delay_seconds=config.repository_cleanup_delay_seconds,
            dry_run=config.dry_run,
            metrics=metrics,
            metrics_port=config.metrics_port,
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the cleanup loops, and the metrics server if a port is configured."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        if self.metrics and self.metrics_port:
            self.metrics.start_server(self.metrics_port)

        self._running = True
        self._start_time = datetime.now()
        self._tasks = [asyncio.create_task(self._cleanup_loop())]
        if self.repository_cleanup_service:
            self._tasks.append(asyncio.create_task(self._repository_cleanup_loop()))

        logger.info("scheduler_started", delay_seconds=self.delay_seconds, dry_run=self.dry_run)

    async def stop(self):
        """Stop the loops and wait for any cycle still running in a worker thread."""
        if not self._running:
            return

        logger.info("scheduler_stopping")
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        await self._wait_for_in_flight()
        logger.info("scheduler_stopped")

    async def _wait_for_in_flight(self):
        pending = [
            future for future in (self._cleanup_in_flight, self._repository_cleanup_in_flight)
            if future is not None and not future.done()
        ]
        if pending:
            logger.info("waiting_for_running_cycle", cycles=len(pending))
        await asyncio.gather(*pending, return_exceptions=True)

    async def _cleanup_loop(self):
        while self._running:
            await self.run_cleanup_cycle()
            await asyncio.sleep(self.delay_seconds)

    async def _repository_cleanup_loop(self):
        while self._running:
            await self.run_repository_cleanup()
            await asyncio.sleep(self.repository_cleanup_delay_seconds)

    async def run_cleanup_cycle(self) -> Optional[CleanupSummary]:
        """Run one paging cleanup cycle; errors are recorded, not raised."""
        async with self._cleanup_lock:
            if self._cleanup_in_flight is not None:
                await asyncio.gather(self._cleanup_in_flight, return_exceptions=True)
            cycle_start = self.clock()
            self._cleanup_in_flight = asyncio.ensure_future(
                asyncio.to_thread(self.cleanup_service.clean_up, cycle_start, self.dry_run)
            )
            try:
                # Cancelling the caller leaves the worker thread running; stop() waits for it
                summary = await asyncio.shield(self._cleanup_in_flight)
            except Exception as e:
                logger.error("cleanup_cycle_failed", error=str(e))
                self._total_cleanups += 1
                self._failed_cleanups += 1
                self._last_error = str(e)
                return None

        self._total_cleanups += 1
        self._successful_cleanups += 1
        self._last_error = None
        self._last_cleanup = cycle_start
        logger.info("cleanup_cycle_completed", records=summary.records,
                    bytes_freed=summary.bytes_freed, dry_run=self.dry_run)
        return summary

    async def run_repository_cleanup(self) -> Optional[int]:
        """Run one retention sweep; errors are recorded, not raised."""
        async with self._repository_cleanup_lock:
            if self._repository_cleanup_in_flight is not None:
                await asyncio.gather(self._repository_cleanup_in_flight, return_exceptions=True)
            now = self.clock()
            self._repository_cleanup_in_flight = asyncio.ensure_future(
                asyncio.to_thread(self.repository_cleanup_service.clean_up, now)
            )
            try:
                purged = await asyncio.shield(self._repository_cleanup_in_flight)
            except Exception as e:
                logger.error("repository_cleanup_failed", error=str(e))
                self._last_error = str(e)
                return None
        self._last_repository_cleanup = now
        return purged

    def get_status(self) -> SchedulerStatus:
        """Get current scheduler status."""
        uptime = 0.0
        if self._start_time:
            uptime = (datetime.now() - self._start_time).total_seconds()
        return SchedulerStatus(
            running=self._running,
            last_cleanup=self._last_cleanup,
            last_repository_cleanup=self._last_repository_cleanup,
            total_cleanups=self._total_cleanups,
            successful_cleanups=self._successful_cleanups,
            failed_cleanups=self._failed_cleanups,
            last_error=self._last_error,
            uptime_seconds=uptime,
        )
