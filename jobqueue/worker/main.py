"""
Worker process for executing jobs.

The worker sweeps its queues round-robin, claims jobs up to its concurrency
bound, runs each claimed job as an independent task and reports the outcome
back to the Queue Manager. A heartbeat task runs alongside the sweep loop
for the worker's whole lifetime.
"""

import asyncio
import contextlib
import logging
import os
import signal
import sys
import time

from jobqueue.config import get_settings
from jobqueue.constants import DEFAULT_PROCESSOR, SPAN_EXECUTE_JOB
from jobqueue.errors import JobQueueError, RecordInconsistencyError, StoreUnavailableError
from jobqueue.liveness import LivenessRegistry
from jobqueue.observability.logging import bind_context, setup_logging
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import get_tracer, setup_tracing
from jobqueue.queue.manager import QueueManager
from jobqueue.store import create_store
from jobqueue.types.job import JobRecord
from jobqueue.worker.processors import ProcessorRegistry, default_registry

logger = logging.getLogger(__name__)


class Worker:
    """
    Job worker that polls queues and executes jobs.

    Features:
    - Round-robin sweep over a fixed set of queues, skipping paused ones
    - Non-blocking dispatch bounded by a concurrency limit
    - Idle back-off when a sweep finds no work
    - Heartbeats reporting concurrency and in-flight count
    - Graceful drain on shutdown
    """

    def __init__(
        self,
        manager: QueueManager,
        liveness: LivenessRegistry,
        processors: ProcessorRegistry | None = None,
        worker_id: str | None = None,
        queues: list[str] | None = None,
        concurrency: int | None = None,
        idle_backoff: float | None = None,
        heartbeat_interval: float | None = None,
        dead_letter_after_attempts: int | None = None,
    ):
        """
        Initialize the worker.

        Args:
            manager: Queue Manager used for every job transition.
            liveness: Registry receiving this worker's heartbeats.
            processors: Processor registry; must contain a "default" entry.
            worker_id: Unique worker identifier. Defaults to hostname + PID.
            queues: Queues to sweep, in order.
            concurrency: Maximum number of jobs executing at once.
            idle_backoff: Seconds to sleep after a sweep that found no work.
            heartbeat_interval: Seconds between heartbeats.
            dead_letter_after_attempts: Escalate a failed job once its attempts
                reach this value. 0 disables escalation.
        """
        settings = get_settings()

        self.worker_id = worker_id or settings.worker_id or f"{os.uname().nodename}-{os.getpid()}"
        self.queues = list(queues or settings.worker_queues)
        self.concurrency = concurrency or settings.worker_concurrency
        self.idle_backoff = (
            idle_backoff if idle_backoff is not None else settings.worker_idle_backoff_seconds
        )
        self.heartbeat_interval = heartbeat_interval or settings.worker_heartbeat_interval_seconds
        self.dead_letter_after_attempts = (
            dead_letter_after_attempts
            if dead_letter_after_attempts is not None
            else settings.dead_letter_after_attempts
        )

        self._manager = manager
        self._liveness = liveness
        self._processors = processors or default_registry
        if DEFAULT_PROCESSOR not in self._processors:
            raise ValueError(f"Processor registry needs a {DEFAULT_PROCESSOR!r} entry")

        self._running = False
        self._stop_event = asyncio.Event()
        self._in_flight = 0
        self._current_jobs: dict[str, asyncio.Task] = {}
        self._heartbeat_task: asyncio.Task | None = None
        self._metrics = get_metrics()

    @property
    def in_flight(self) -> int:
        """Jobs claimed by this worker that have not finished yet."""
        return self._in_flight

    async def start(self) -> None:
        """Run the sweep loop until `stop()` is called, then drain."""
        logger.info(
            "Worker starting",
            extra={
                "worker_id": self.worker_id,
                "queues": self.queues,
                "concurrency": self.concurrency,
            },
        )

        self._running = True
        self._stop_event.clear()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

        while self._running:
            try:
                made_progress = await self.sweep()
            except Exception as e:
                logger.exception(
                    f"Error in worker loop: {e}",
                    extra={"worker_id": self.worker_id},
                )
                made_progress = False

            if made_progress:
                await asyncio.sleep(0)
            else:
                await self._idle()

        await self._drain()

        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None

        logger.info("Worker stopped", extra={"worker_id": self.worker_id})

    async def stop(self) -> None:
        """Stop claiming new jobs; in-flight jobs run to completion."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self._running = False
        self._stop_event.set()

    async def _idle(self) -> None:
        # Wakes early when stop() is called.
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.idle_backoff)

    async def _drain(self) -> None:
        if self._current_jobs:
            logger.info(f"Waiting for {len(self._current_jobs)} jobs to complete")
            await asyncio.gather(*list(self._current_jobs.values()), return_exceptions=True)

    async def sweep(self) -> bool:
        """
        Make one round-robin pass over the queues.

        Stops early once the concurrency bound is reached. A store failure on
        one queue skips that queue for this sweep only.

        Returns:
            True if at least one job was claimed.
        """
        made_progress = False

        for queue in self.queues:
            if self._in_flight >= self.concurrency:
                break

            try:
                if await self._manager.is_queue_paused(queue):
                    continue
                job_id = await self._manager.dequeue_next(queue)
            except StoreUnavailableError as e:
                logger.warning(
                    "Store unavailable, skipping queue for this sweep",
                    extra={"queue": queue, "error": str(e)},
                )
                continue

            if job_id is None:
                continue

            self._dispatch(queue, job_id)
            made_progress = True

        return made_progress

    def _dispatch(self, queue: str, job_id: str) -> None:
        self._in_flight += 1
        self._metrics.record_job_dequeued(queue, self.worker_id)
        self._metrics.set_in_flight(self.worker_id, self._in_flight)

        task = asyncio.create_task(self._process_job(queue, job_id), name=f"job-{job_id}")
        self._current_jobs[job_id] = task

    async def _process_job(self, queue: str, job_id: str) -> None:
        """
        Execute a single claimed job.

        Handles the full lifecycle:
        1. Transition to ACTIVE
        2. Load the record (missing record fails the job)
        3. Run the processor for the job type
        4. Mark as COMPLETED, or record the attempt and mark as FAILED

        If a Queue Manager call fails along the way the job is marked FAILED
        with a "Worker exception" error, so it never stays ACTIVE or vanishes.
        """
        start_time = time.monotonic()
        status = "failed"

        try:
            await self._manager.move_to_active(queue, job_id)

            job = await self._manager.get_job(job_id)
            if job is None:
                error = RecordInconsistencyError(job_id, queue)
                logger.error(
                    "Claimed job has no record",
                    extra={"job_id": job_id, "queue": queue, "worker_id": self.worker_id},
                )
                self._metrics.record_inconsistency(queue)
                await self._manager.move_to_failed(queue, job_id, error)
                return

            processor = self._processors.get(job.type)

            logger.info(
                "Processing job",
                extra={"job_id": job_id, "queue": queue, "type": job.type},
            )

            with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
                span.set_attribute("job_id", job_id)
                span.set_attribute("queue", queue)
                span.set_attribute("type", job.type)

                try:
                    result = await processor(job)
                except Exception as e:
                    status = await self._handle_failure(queue, job, e)
                else:
                    await self._manager.move_to_completed(queue, job_id, result)
                    status = "completed"
                    logger.info(
                        "Job completed",
                        extra={"job_id": job_id, "queue": queue},
                    )

        except Exception as e:
            logger.exception(
                "Exception dispatching job",
                extra={"job_id": job_id, "queue": queue, "worker_id": self.worker_id},
            )

            # The id has left the priority structure; park it in failed
            try:
                await self._manager.move_to_failed(queue, job_id, f"Worker exception: {e}")
            except Exception:
                logger.exception("Failed to mark job as failed", extra={"job_id": job_id})

        finally:
            self._in_flight -= 1
            self._current_jobs.pop(job_id, None)
            self._metrics.set_in_flight(self.worker_id, self._in_flight)
            self._metrics.record_job_finished(queue, status, time.monotonic() - start_time)

    async def _handle_failure(self, queue: str, job: JobRecord, error: Exception) -> str:
        """
        Record a processor failure on the job.

        Returns:
            The resulting job state name.
        """
        message = str(error) or type(error).__name__
        attempts = await self._manager.record_attempt(job.id)
        await self._manager.move_to_failed(queue, job.id, message)

        logger.warning(
            "Job failed",
            extra={"job_id": job.id, "queue": queue, "error": message, "attempts": attempts},
        )

        if self.dead_letter_after_attempts and attempts >= self.dead_letter_after_attempts:
            try:
                await self._manager.move_to_dead_letter(job.id)
            except JobQueueError as e:
                # the job is already recorded as failed
                logger.warning(
                    "Dead-letter escalation failed",
                    extra={"job_id": job.id, "queue": queue, "error": str(e)},
                )
                return "failed"
            return "dead"
        return "failed"

    async def _heartbeat_loop(self) -> None:
        """Report liveness every heartbeat interval until cancelled."""
        while True:
            try:
                await self._liveness.record_heartbeat(
                    self.worker_id,
                    self.concurrency,
                    self._in_flight,
                )
                self._metrics.record_heartbeat(self.worker_id)
            except Exception as e:
                logger.warning(
                    "Heartbeat failed",
                    extra={"worker_id": self.worker_id, "error": str(e)},
                )

            await asyncio.sleep(self.heartbeat_interval)


async def run_async() -> None:
    """Run the worker asynchronously."""
    setup_logging()
    setup_tracing()
    settings = get_settings()

    store = create_store(settings)
    try:
        await store.ping()
    except StoreUnavailableError:
        logger.critical("Cannot reach the shared store at startup", exc_info=True)
        await store.close()
        sys.exit(1)

    manager = QueueManager(store)
    liveness = LivenessRegistry(store, timeout_seconds=settings.worker_heartbeat_timeout_seconds)
    worker = Worker(manager, liveness)
    bind_context(worker_id=worker.worker_id)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await store.close()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
