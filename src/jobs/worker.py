"""Asyncio worker pools with retries."""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, assert_never

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import settings
from src.jobs.kinds import (
    AutoEnrollmentSweepJob,
    BatchEnrichNewJob,
    EnrichProspectJob,
    EnrollProspectJob,
    Job,
)
from src.models.errors import BacklinkEngineError
from src.pipeline.orchestrator import EnrichmentPipeline
from src.utils.logger import get_logger

logger = get_logger("worker")

Handler = Callable[[Job], Awaitable[Any]]


async def dispatch(job: Job, pipeline: EnrichmentPipeline) -> Any:
    """Run one job against the pipeline."""
    match job:
        case EnrichProspectJob(prospect_id=prospect_id, auto_enroll=auto_enroll):
            return await pipeline.process_prospect(prospect_id, auto_enroll=auto_enroll)
        case BatchEnrichNewJob(limit=limit):
            return await pipeline.run_enrichment_batch(limit)
        case AutoEnrollmentSweepJob(limit=limit):
            return await pipeline.run_enrollment_sweep(limit)
        case EnrollProspectJob(prospect_id=prospect_id, campaign_id=campaign_id):
            return await pipeline.enroll_prospect(prospect_id, campaign_id)
        case _:
            assert_never(job)


def max_attempts(job: Job) -> int:
    """Enrollment delivery gets more attempts than the other jobs."""
    if isinstance(job, EnrollProspectJob):
        return settings.enrollment_job_attempts
    return settings.job_attempts


def pool_name(job: Job) -> str:
    match job:
        case EnrichProspectJob() | BatchEnrichNewJob():
            return "enrichment"
        case AutoEnrollmentSweepJob() | EnrollProspectJob():
            return "enrollment"
        case _:
            assert_never(job)


def _log_retry(job: Job, state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning("job_retrying", job=repr(job), attempt=state.attempt_number, error=str(exc))


@dataclass
class PoolStats:
    completed: int = 0
    failed: int = 0


class WorkerPool:
    """Bounded-concurrency consumer of a job queue.

    Transient failures are retried with exponential backoff. Domain errors
    (duplicates, conflicts, missing records, illegal transitions) are final.
    """

    def __init__(
        self,
        name: str,
        handler: Handler,
        concurrency: int,
        backoff_seconds: float | None = None,
    ):
        """Initialize the pool.

        Args:
            name: Stage name used in logs.
            handler: Coroutine run for each job.
            concurrency: Number of jobs processed in parallel.
            backoff_seconds: Base of the exponential retry backoff.
        """
        if concurrency <= 0:
            raise ValueError("concurrency must be positive")
        self.name = name
        self.handler = handler
        self.concurrency = concurrency
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.retry_backoff_seconds
        )
        self.queue: asyncio.Queue[Job] = asyncio.Queue()
        self.stats = PoolStats()
        self._workers: list[asyncio.Task] = []

    async def submit(self, job: Job) -> None:
        await self.queue.put(job)
        logger.debug("job_submitted", pool=self.name, job=repr(job), queued=self.queue.qsize())

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._work(), name=f"{self.name}-{i}")
            for i in range(self.concurrency)
        ]
        logger.info("worker_pool_started", pool=self.name, concurrency=self.concurrency)

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        await self.queue.join()

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info(
            "worker_pool_stopped",
            pool=self.name,
            completed=self.stats.completed,
            failed=self.stats.failed,
        )

    async def _work(self) -> None:
        while True:
            job = await self.queue.get()
            try:
                await self.run(job)
            finally:
                self.queue.task_done()

    async def run(self, job: Job) -> Any:
        """Run one job with retries; the final failure is logged, not raised."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts(job)),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=self.backoff_seconds * 8),
            retry=retry_if_not_exception_type(BacklinkEngineError),
            before_sleep=lambda state: _log_retry(job, state),
            reraise=True,
        )
        try:
            result = await retrying(self.handler, job)
        except Exception as e:
            self.stats.failed += 1
            logger.error(
                "job_failed",
                pool=self.name,
                job=repr(job),
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        self.stats.completed += 1
        logger.info("job_completed", pool=self.name, job=repr(job))
        return result


class Workers:
    """One pool per pipeline stage, routing each job kind to its pool."""

    def __init__(
        self,
        pipeline: EnrichmentPipeline,
        enrichment_concurrency: int | None = None,
        enrollment_concurrency: int | None = None,
        backoff_seconds: float | None = None,
    ):
        self.pipeline = pipeline

        async def handler(job: Job) -> Any:
            return await dispatch(job, pipeline)

        self.pools = {
            "enrichment": WorkerPool(
                "enrichment",
                handler,
                enrichment_concurrency or settings.enrichment_concurrency,
                backoff_seconds,
            ),
            "enrollment": WorkerPool(
                "enrollment",
                handler,
                enrollment_concurrency or settings.enrollment_concurrency,
                backoff_seconds,
            ),
        }

    async def submit(self, job: Job) -> None:
        await self.pools[pool_name(job)].submit(job)

    def start(self) -> None:
        for pool in self.pools.values():
            pool.start()

    async def join(self) -> None:
        for pool in self.pools.values():
            await pool.join()

    async def stop(self) -> None:
        for pool in self.pools.values():
            await pool.stop()
