"""
Routing External Service Integrations
=====================================

APScheduler wrapper running the SLA sweep in the background.
"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SLA_SWEEP_JOB_ID = "sla_sweep"


class SLAScheduler:
    """
    Wrapper for APScheduler for the periodic SLA sweep.

    ``max_instances=1`` keeps at most one sweep in flight; a tick that fires
    while the previous sweep is still running is skipped and coalesced.
    """

    def __init__(self, interval_seconds: int = 3600):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(
        self,
        job_func: Callable[[], Awaitable[object]],
        run_immediately: bool = False
    ) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()

        job_kwargs = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id=SLA_SWEEP_JOB_ID,
            name="SLA Sweep Job",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **job_kwargs
        )

        self._scheduler.start()
        self._running = True

        logger.info(
            "SLA scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=True)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
