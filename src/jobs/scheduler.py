"""Periodic job scheduling."""

import asyncio
from typing import Callable

from config.settings import settings
from src.jobs.kinds import AutoEnrollmentSweepJob, BatchEnrichNewJob, Job
from src.jobs.worker import Workers
from src.utils.logger import get_logger

logger = get_logger("scheduler")


class Scheduler:
    """Enqueues batch enrichment and auto-enrollment sweeps on fixed intervals."""

    def __init__(
        self,
        workers: Workers,
        enrichment_interval: float | None = None,
        enrollment_interval: float | None = None,
    ):
        self.workers = workers
        self.enrichment_interval = enrichment_interval or settings.enrichment_interval_seconds
        self.enrollment_interval = enrollment_interval or settings.auto_enrollment_interval_seconds
        self._tasks: list[asyncio.Task] = []

    async def _every(self, interval: float, make_job: Callable[[], Job]) -> None:
        while True:
            job = make_job()
            await self.workers.submit(job)
            logger.info("job_scheduled", job=repr(job), next_in_seconds=interval)
            await asyncio.sleep(interval)

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(
                self._every(
                    self.enrichment_interval,
                    lambda: BatchEnrichNewJob(limit=settings.enrichment_batch_size),
                ),
                name="schedule-enrichment",
            ),
            asyncio.create_task(
                self._every(
                    self.enrollment_interval,
                    lambda: AutoEnrollmentSweepJob(limit=settings.auto_enrollment_batch_size),
                ),
                name="schedule-auto-enrollment",
            ),
        ]
        logger.info(
            "scheduler_started",
            enrichment_interval=self.enrichment_interval,
            enrollment_interval=self.enrollment_interval,
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("scheduler_stopped")

    async def run_forever(self, stop_event: asyncio.Event | None = None) -> None:
        """Run workers and schedules until ``stop_event`` is set or cancelled."""
        stop_event = stop_event or asyncio.Event()
        self.workers.start()
        self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()
            await self.workers.stop()
