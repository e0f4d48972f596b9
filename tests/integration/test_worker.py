"""
Integration tests for the worker against the in-memory store.
"""

import asyncio

import pytest

from jobqueue.constants import DEAD_LETTER_KEY, FAILED_INDEX_KEY, JobState
from jobqueue.errors import ProcessorError, StoreUnavailableError
from jobqueue.liveness import LivenessRegistry
from jobqueue.queue.keys import job_key, priority_key
from jobqueue.queue.manager import QueueManager
from jobqueue.store.memory import InMemoryStore
from jobqueue.worker.main import Worker
from jobqueue.worker.processors import ProcessorRegistry


def make_worker(manager, liveness, processors, **kwargs) -> Worker:
    options = {
        "worker_id": "test-worker",
        "queues": ["default", "email"],
        "concurrency": 2,
        "idle_backoff": 0.01,
        "heartbeat_interval": 0.05,
        "dead_letter_after_attempts": 0,
    }
    options.update(kwargs)
    return Worker(manager, liveness, processors=processors, **options)


async def run_until(worker: Worker, condition, wait_until) -> None:
    """Run the worker loop until `condition` holds, then stop and drain."""
    task = asyncio.create_task(worker.start())
    try:
        await wait_until(condition)
    finally:
        await worker.stop()
        await asyncio.wait_for(task, timeout=3)


class TestWorkerExecution:
    """Tests for the claim, execute and report cycle."""

    async def test_successful_job_completes(
        self, manager: QueueManager, liveness, processors, wait_until, check_consistent
    ):
        job_id = await manager.enqueue("default", "default", {"n": 1})
        worker = make_worker(manager, liveness, processors)

        async def completed() -> bool:
            job = await manager.get_job(job_id)
            return job.state == JobState.COMPLETED

        await run_until(worker, completed, wait_until)

        job = await manager.get_job(job_id)
        assert job.result == {"processed": True, "id": job_id}
        assert job.started_at is not None
        assert job.completed_at is not None
        assert worker.in_flight == 0
        await check_consistent(job_id)

    async def test_failing_processor_marks_job_failed(
        self,
        manager: QueueManager,
        store: InMemoryStore,
        liveness,
        processors: ProcessorRegistry,
        wait_until,
        check_consistent,
    ):
        """Test a processor error records the attempt and fills the failed index."""

        @processors.register("email")
        async def flaky_email(job):
            raise ProcessorError("SMTP Connection timed out")

        job_id = await manager.enqueue("email", "email", {"email": "a@example.com"})
        worker = make_worker(manager, liveness, processors)

        async def failed() -> bool:
            return (await manager.get_job(job_id)).state == JobState.FAILED

        await run_until(worker, failed, wait_until)

        job = await manager.get_job(job_id)
        assert job.error == "SMTP Connection timed out"
        assert job.attempts == 1
        assert job.failed_at is not None
        assert job_id in await store.lrange(FAILED_INDEX_KEY)
        await check_consistent(job_id)

        reset = await manager.retry_failed_job(job_id)
        assert reset.state == JobState.WAITING
        assert (await manager.get_job(job_id)).attempts == 0
        await check_consistent(job_id)

    async def test_unknown_type_uses_default_processor(
        self, manager: QueueManager, liveness, processors, wait_until
    ):
        job_id = await manager.enqueue("default", "video", {})
        worker = make_worker(manager, liveness, processors)

        async def completed() -> bool:
            return (await manager.get_job(job_id)).state == JobState.COMPLETED

        await run_until(worker, completed, wait_until)

        assert (await manager.get_job(job_id)).result["processed"] is True

    async def test_missing_record_fails_claimed_id(
        self, manager: QueueManager, store: InMemoryStore, liveness, processors, wait_until
    ):
        """Test that an ordered-set id with no record ends up in the failed index."""
        await manager.priority_queue.insert("default", "ghost", 0)
        worker = make_worker(manager, liveness, processors)

        async def failed() -> bool:
            return "ghost" in await store.lrange(FAILED_INDEX_KEY)

        await run_until(worker, failed, wait_until)

        fields = await store.hgetall(job_key("ghost"))
        assert fields["state"] == JobState.FAILED
        assert "record missing" in fields["error"]
        assert await manager.get_job("ghost") is None

    async def test_escalation_moves_job_to_dead_letter(
        self,
        manager: QueueManager,
        store: InMemoryStore,
        liveness,
        processors: ProcessorRegistry,
        wait_until,
        check_consistent,
    ):
        @processors.register("email")
        async def broken(job):
            raise RuntimeError("mailbox unavailable")

        job_id = await manager.enqueue("email", "email")
        worker = make_worker(manager, liveness, processors, dead_letter_after_attempts=1)

        async def dead() -> bool:
            return (await manager.get_job(job_id)).state == JobState.DEAD

        await run_until(worker, dead, wait_until)

        assert job_id in await store.lrange(DEAD_LETTER_KEY)
        assert job_id not in await store.lrange(FAILED_INDEX_KEY)
        await check_consistent(job_id)

    async def test_store_error_after_processing_fails_job(
        self,
        manager: QueueManager,
        store,
        liveness,
        processors: ProcessorRegistry,
        wait_until,
        check_consistent,
    ):
        """Test that a failed completion write parks the job in failed."""

        @processors.register("report")
        async def report(job):
            store.fail_transactions()
            return {"rows": 3}

        job_id = await manager.enqueue("default", "report")
        worker = make_worker(manager, liveness, processors, queues=["default"])

        assert await worker.sweep() is True

        async def drained() -> bool:
            return worker.in_flight == 0

        await wait_until(drained)

        job = await manager.get_job(job_id)
        assert job.state == JobState.FAILED
        assert job.error.startswith("Worker exception")
        await check_consistent(job_id)

    async def test_store_error_before_processing_keeps_job_retryable(
        self, manager: QueueManager, store, liveness, processors, wait_until, check_consistent
    ):
        """Test that a claimed id whose activation fails is not lost."""
        job_id = await manager.enqueue("default", "default")
        worker = make_worker(manager, liveness, processors, queues=["default"])
        store.fail_transactions()

        assert await worker.sweep() is True

        async def drained() -> bool:
            return worker.in_flight == 0

        await wait_until(drained)

        job = await manager.get_job(job_id)
        assert job.state == JobState.FAILED
        assert job.error.startswith("Worker exception")
        assert job_id in await store.lrange(FAILED_INDEX_KEY)
        await check_consistent(job_id)

        await manager.retry_failed_job(job_id)
        assert await manager.dequeue_next("default") == job_id


class TestWorkerScheduling:
    """Tests for concurrency, pausing and store failures."""

    async def test_concurrency_bound(
        self, manager: QueueManager, liveness, processors: ProcessorRegistry
    ):
        """Test that a worker with concurrency 2 holds at most two jobs."""
        release = asyncio.Event()

        @processors.register("block")
        async def block(job):
            await release.wait()
            return None

        ids = [await manager.enqueue("default", "block") for _ in range(3)]
        worker = make_worker(manager, liveness, processors, queues=["default"])

        assert await worker.sweep() is True
        assert await worker.sweep() is True
        assert await worker.sweep() is False

        # let the dispatched tasks reach the processor
        await asyncio.sleep(0.02)

        summary = await manager.get_queue_summary("default")
        assert worker.in_flight == 2
        assert summary.active == 2
        assert summary.waiting == 1
        assert await manager.priority_queue.job_ids("default") == [ids[2]]

        release.set()
        await asyncio.sleep(0.05)
        assert worker.in_flight == 0
        assert await worker.sweep() is True
        await asyncio.sleep(0.05)

    async def test_paused_queue_is_skipped(self, manager: QueueManager, liveness, processors):
        paused_job = await manager.enqueue("default", "default")
        email_job = await manager.enqueue("email", "email")
        await manager.set_queue_paused("default", True)
        worker = make_worker(manager, liveness, processors, concurrency=5)

        assert await worker.sweep() is True

        assert await manager.priority_queue.job_ids("default") == [paused_job]
        assert not await manager.priority_queue.contains("email", email_job)

        await manager.set_queue_paused("default", False)
        assert await worker.sweep() is True
        assert await manager.priority_queue.size("default") == 0
        await asyncio.sleep(0.05)

    async def test_store_failure_skips_queue(self, clock, processors):
        """Test that one unreachable queue does not stop the sweep."""

        class FlakyStore(InMemoryStore):
            async def zpopmin(self, key: str):
                if key == priority_key("default"):
                    raise StoreUnavailableError("zpopmin", ConnectionError("reset"))
                return await super().zpopmin(key)

        store = FlakyStore()
        manager = QueueManager(store, clock=clock)
        liveness = LivenessRegistry(store, clock=clock)
        await manager.enqueue("default", "default")
        email_job = await manager.enqueue("email", "email")
        worker = make_worker(manager, liveness, processors)

        assert await worker.sweep() is True
        assert not await manager.priority_queue.contains("email", email_job)
        assert await manager.priority_queue.size("default") == 1
        await asyncio.sleep(0.05)

    async def test_stop_drains_in_flight_jobs(
        self, manager: QueueManager, liveness, processors: ProcessorRegistry, wait_until
    ):
        """Test that stop waits for running jobs instead of abandoning them."""
        started = asyncio.Event()

        @processors.register("slow")
        async def slow(job):
            started.set()
            await asyncio.sleep(0.2)
            return {"done": True}

        job_id = await manager.enqueue("default", "slow")
        worker = make_worker(manager, liveness, processors)
        task = asyncio.create_task(worker.start())

        await asyncio.wait_for(started.wait(), timeout=3)
        await worker.stop()
        await asyncio.wait_for(task, timeout=3)

        job = await manager.get_job(job_id)
        assert job.state == JobState.COMPLETED
        assert job.result == {"done": True}

    async def test_heartbeat_recorded(
        self, manager: QueueManager, liveness: LivenessRegistry, processors, wait_until
    ):
        worker = make_worker(manager, liveness, processors, concurrency=3)

        async def registered() -> bool:
            return len(await liveness.list_workers()) == 1

        await run_until(worker, registered, wait_until)

        status = (await liveness.list_workers())[0]
        assert status.worker_id == "test-worker"
        assert status.concurrency == 3
        assert status.alive is True

    def test_registry_without_default_rejected(self, manager, liveness):
        with pytest.raises(ValueError):
            make_worker(manager, liveness, ProcessorRegistry({"email": lambda job: None}))
