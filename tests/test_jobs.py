"""Tests for job dispatch, worker pools and the scheduler."""

import asyncio

import pytest

from src.jobs.kinds import (
    AutoEnrollmentSweepJob,
    BatchEnrichNewJob,
    EnrichProspectJob,
    EnrollProspectJob,
)
from src.jobs.scheduler import Scheduler
from src.jobs.worker import WorkerPool, Workers, dispatch, max_attempts, pool_name
from src.models.errors import ProspectNotFoundError


class RecordingPipeline:
    """Stands in for EnrichmentPipeline and records what was asked of it."""

    def __init__(self):
        self.calls: list[tuple] = []

    async def process_prospect(self, prospect_id, config=None, auto_enroll=True):
        self.calls.append(("process", prospect_id, auto_enroll))
        return "processed"

    async def run_enrichment_batch(self, limit=None, auto_enroll=True):
        self.calls.append(("batch", limit))
        return "batch"

    async def run_enrollment_sweep(self, limit=None, config=None):
        self.calls.append(("sweep", limit))
        return "sweep"

    async def enroll_prospect(self, prospect_id, campaign_id):
        self.calls.append(("enroll", prospect_id, campaign_id))
        return "enrolled"


class FlakyHandler:
    def __init__(self, failures: int, error: Exception | None = None):
        self.failures = failures
        self.error = error or ConnectionError("temporary outage")
        self.calls = 0

    async def __call__(self, job):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "done"


class TestDispatch:
    @pytest.mark.parametrize(
        "job,call,result",
        [
            (EnrichProspectJob(7, auto_enroll=False), ("process", 7, False), "processed"),
            (BatchEnrichNewJob(limit=20), ("batch", 20), "batch"),
            (AutoEnrollmentSweepJob(), ("sweep", None), "sweep"),
            (EnrollProspectJob(7, 3), ("enroll", 7, 3), "enrolled"),
        ],
    )
    async def test_routes_each_kind(self, job, call, result):
        pipeline = RecordingPipeline()
        assert await dispatch(job, pipeline) == result
        assert pipeline.calls == [call]

    def test_pools_and_attempts(self):
        assert pool_name(EnrichProspectJob(1)) == "enrichment"
        assert pool_name(BatchEnrichNewJob()) == "enrichment"
        assert pool_name(AutoEnrollmentSweepJob()) == "enrollment"
        assert pool_name(EnrollProspectJob(1, 2)) == "enrollment"
        assert max_attempts(EnrollProspectJob(1, 2)) == 5
        assert max_attempts(EnrichProspectJob(1)) == 3


class TestWorkerPool:
    async def test_transient_failures_are_retried(self):
        handler = FlakyHandler(failures=2)
        pool = WorkerPool("test", handler, concurrency=1, backoff_seconds=0)

        assert await pool.run(EnrichProspectJob(1)) == "done"
        assert handler.calls == 3
        assert (pool.stats.completed, pool.stats.failed) == (1, 0)

    async def test_gives_up_after_max_attempts(self):
        handler = FlakyHandler(failures=100)
        pool = WorkerPool("test", handler, concurrency=1, backoff_seconds=0)

        assert await pool.run(EnrichProspectJob(1)) is None
        assert handler.calls == 3
        assert pool.stats.failed == 1

    async def test_enrollment_gets_more_attempts(self):
        handler = FlakyHandler(failures=4)
        pool = WorkerPool("test", handler, concurrency=1, backoff_seconds=0)

        assert await pool.run(EnrollProspectJob(1, 2)) == "done"
        assert handler.calls == 5

    async def test_domain_errors_are_final(self):
        handler = FlakyHandler(failures=100, error=ProspectNotFoundError("Prospect 1 not found"))
        pool = WorkerPool("test", handler, concurrency=1, backoff_seconds=0)

        assert await pool.run(EnrichProspectJob(1)) is None
        assert handler.calls == 1

    async def test_queue_is_drained(self):
        handled = []

        async def handler(job):
            handled.append(job.prospect_id)

        pool = WorkerPool("test", handler, concurrency=2, backoff_seconds=0)
        pool.start()
        for prospect_id in range(5):
            await pool.submit(EnrichProspectJob(prospect_id))
        await pool.join()
        await pool.stop()

        assert sorted(handled) == [0, 1, 2, 3, 4]
        assert pool.stats.completed == 5

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            WorkerPool("test", FlakyHandler(0), concurrency=0)


class TestWorkersAndScheduler:
    async def test_jobs_are_routed_to_their_pool(self):
        pipeline = RecordingPipeline()
        workers = Workers(pipeline, 1, 1, backoff_seconds=0)

        await workers.submit(EnrichProspectJob(1))
        await workers.submit(EnrollProspectJob(1, 2))

        assert workers.pools["enrichment"].queue.qsize() == 1
        assert workers.pools["enrollment"].queue.qsize() == 1

    async def test_scheduler_enqueues_both_batches(self):
        workers = Workers(RecordingPipeline(), 1, 1, backoff_seconds=0)
        scheduler = Scheduler(workers, enrichment_interval=3600, enrollment_interval=3600)

        scheduler.start()
        for _ in range(3):
            await asyncio.sleep(0)
        await scheduler.stop()

        assert isinstance(workers.pools["enrichment"].queue.get_nowait(), BatchEnrichNewJob)
        assert isinstance(workers.pools["enrollment"].queue.get_nowait(), AutoEnrollmentSweepJob)

    async def test_run_forever_processes_until_stopped(self):
        pipeline = RecordingPipeline()
        workers = Workers(pipeline, 1, 1, backoff_seconds=0)
        scheduler = Scheduler(workers, enrichment_interval=3600, enrollment_interval=3600)
        stop = asyncio.Event()

        task = asyncio.create_task(scheduler.run_forever(stop))
        for _ in range(100):
            if len(pipeline.calls) >= 2:
                break
            await asyncio.sleep(0.01)
        stop.set()
        await task

        assert {call[0] for call in pipeline.calls} == {"batch", "sweep"}
