"""
Queue Manager.

Owns every mutation of job records and their ordering/state collections.
Each job id lives in exactly one collection matching its `state`:

    waiting    queue:{q}:priority
    active     queue:{q}:active
    completed  queue:{q}:completed
    failed     queue:{q}:failed + failed_jobs
    dead       dead_letter_jobs

Operator transitions (retry, requeue, dead-letter) claim the job in its index
inside the same transaction that writes the new state: the index removal and
every other write land together or not at all, and a caller whose claim finds
the job already gone gets JobNotFoundError.
"""

import asyncio
import json
import logging
import math
from typing import Any
from uuid import uuid4

from jobqueue.clock import Clock, utcnow
from jobqueue.constants import (
    DEAD_LETTER_KEY,
    DEFAULT_PRIORITY,
    FAILED_INDEX_KEY,
    LATENCY_PERCENTILE,
    SPAN_DEQUEUE_JOB,
    SPAN_ENQUEUE_JOB,
    JobState,
)
from jobqueue.errors import JobNotFoundError, RecordInconsistencyError
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import get_tracer
from jobqueue.queue.keys import (
    active_key,
    completed_key,
    failed_key,
    job_key,
    paused_key,
)
from jobqueue.queue.priority import PriorityQueue
from jobqueue.store.base import StorePort, StoreTransaction
from jobqueue.types.job import (
    TERMINAL_TIMESTAMP_FIELDS,
    JobRecord,
    QueueMetrics,
    QueueSummary,
    SystemMetrics,
)

logger = logging.getLogger(__name__)


def _latency_stats(records: list[JobRecord]) -> tuple[float, float]:
    """Average and p95 of completion latency (ms) over completed records."""
    latencies = sorted(
        latency for latency in (r.latency_ms for r in records) if latency is not None
    )
    if not latencies:
        return 0.0, 0.0
    average = sum(latencies) / len(latencies)
    p95 = latencies[math.floor(len(latencies) * LATENCY_PERCENTILE)]
    return average, p95


def _rates(records: list[JobRecord]) -> tuple[float, float]:
    """Success and failure percentages over all observed records."""
    if not records:
        return 0.0, 0.0
    succeeded = sum(1 for r in records if r.state == JobState.COMPLETED)
    failed = sum(1 for r in records if r.state == JobState.FAILED)
    return succeeded / len(records) * 100, failed / len(records) * 100


class QueueManager:
    """
    Orchestrates the job lifecycle over the shared store.

    Implements:
    - enqueue and atomic dequeue via the Priority Queue Engine
    - active/completed/failed transitions used by workers
    - operator retry, dead-letter escalation and requeue
    - pause control and aggregate queue metrics
    """

    def __init__(self, store: StorePort, clock: Clock | None = None):
        """
        Initialize the manager.

        Args:
            store: The shared store adapter.
            clock: Returns the current UTC time. Defaults to the wall clock.
        """
        self._store = store
        self._clock = clock or utcnow
        self._priority = PriorityQueue(store)
        self._metrics = get_metrics()

    @property
    def priority_queue(self) -> PriorityQueue:
        return self._priority

    def _now(self) -> str:
        return self._clock().isoformat()

    # ------------------------------------------------------------------ #
    # Producer side                                                       #
    # ------------------------------------------------------------------ #

    async def enqueue(
        self,
        queue: str,
        job_type: str,
        payload: Any = None,
        priority: int = DEFAULT_PRIORITY,
        job_id: str | None = None,
    ) -> str:
        """
        Create a waiting job and make it visible to dequeue.

        Args:
            queue: Target queue name.
            job_type: Selects the processor that will execute the job.
            payload: JSON-serializable business data.
            priority: Lower values are served first.
            job_id: Optional producer-supplied id; a UUID4 is generated otherwise.

        Returns:
            The job id.
        """
        job_id = job_id or str(uuid4())
        now = self._clock()
        record = JobRecord(
            id=job_id,
            queue=queue,
            type=job_type,
            payload=payload,
            priority=priority,
            state=JobState.WAITING,
            attempts=0,
            created_at=now,
            queued_at=now,
        )

        with get_tracer().start_as_current_span(SPAN_ENQUEUE_JOB) as span:
            span.set_attribute("job_id", job_id)
            span.set_attribute("queue", queue)

            tx = self._store.transaction()
            tx.hset(job_key(job_id), record.to_hash())
            await self._priority.insert(queue, job_id, priority, tx)
            await tx.execute()

        self._metrics.record_job_enqueued(queue)
        logger.info(
            "Enqueued job",
            extra={"job_id": job_id, "queue": queue, "type": job_type, "priority": priority},
        )
        return job_id

    # ------------------------------------------------------------------ #
    # Worker side                                                         #
    # ------------------------------------------------------------------ #

    async def dequeue_next(self, queue: str) -> str | None:
        """
        Claim the lowest-priority-score waiting job of a queue.

        Atomic across concurrent callers: a job id is returned to at most one
        of them. Callers must check `is_queue_paused` first.

        Returns:
            The claimed job id, or None if the queue is empty.
        """
        with get_tracer().start_as_current_span(SPAN_DEQUEUE_JOB) as span:
            span.set_attribute("queue", queue)
            job_id = await self._priority.pop_highest(queue)
            if job_id is not None:
                span.set_attribute("job_id", job_id)
        return job_id

    async def move_to_active(self, queue: str, job_id: str) -> None:
        tx = self._store.transaction()
        tx.rpush(active_key(queue), job_id)
        tx.hset(job_key(job_id), {"state": JobState.ACTIVE.value, "started_at": self._now()})
        await tx.execute()

    async def move_to_completed(self, queue: str, job_id: str, result: Any = None) -> None:
        tx = self._store.transaction()
        tx.lrem(active_key(queue), job_id)
        tx.rpush(completed_key(queue), job_id)
        tx.hset(
            job_key(job_id),
            {
                "state": JobState.COMPLETED.value,
                "completed_at": self._now(),
                "result": json.dumps(result, default=str),
            },
        )
        await tx.execute()

    async def move_to_failed(self, queue: str, job_id: str, error: str | BaseException) -> None:
        """
        Record a failed execution.

        Does not touch `attempts`; callers record the attempt first with
        `record_attempt`.
        """
        message = error if isinstance(error, str) else str(error) or type(error).__name__

        tx = self._store.transaction()
        tx.lrem(active_key(queue), job_id)
        tx.rpush(failed_key(queue), job_id)
        tx.rpush(FAILED_INDEX_KEY, job_id)
        tx.hset(
            job_key(job_id),
            {
                "state": JobState.FAILED.value,
                "failed_at": self._now(),
                "error": message,
            },
        )
        await tx.execute()

    async def record_attempt(self, job_id: str) -> int:
        """Increment and return the job's attempt counter."""
        return await self._store.hincrby(job_key(job_id), "attempts", 1)

    # ------------------------------------------------------------------ #
    # Operator side                                                       #
    # ------------------------------------------------------------------ #

    async def retry_failed_job(self, job_id: str) -> JobRecord:
        """
        Send a failed job back to its queue with a clean slate.

        Raises:
            JobNotFoundError: If the job is not in the global failed index.
            RecordInconsistencyError: If the indexed job has no record.
        """
        record = await self._require_record(job_id, FAILED_INDEX_KEY)

        tx = self._store.transaction()
        tx.claim(FAILED_INDEX_KEY, job_id)
        tx.lrem(failed_key(record.queue), job_id)
        reset = await self._reset_to_waiting(tx, record)
        if not await tx.execute():
            raise JobNotFoundError(job_id, FAILED_INDEX_KEY)

        logger.info("Retried failed job", extra={"job_id": job_id, "queue": record.queue})
        return reset

    async def move_to_dead_letter(self, job_id: str) -> JobRecord:
        """
        Escalate a failed job to the dead-letter structure.

        Raises:
            JobNotFoundError: If the job is not in the global failed index.
            RecordInconsistencyError: If the indexed job has no record.
        """
        record = await self._require_record(job_id, FAILED_INDEX_KEY)

        tx = self._store.transaction()
        tx.claim(FAILED_INDEX_KEY, job_id)
        tx.lrem(failed_key(record.queue), job_id)
        tx.rpush(DEAD_LETTER_KEY, job_id)
        tx.hset(job_key(job_id), {"state": JobState.DEAD.value})
        if not await tx.execute():
            raise JobNotFoundError(job_id, FAILED_INDEX_KEY)

        logger.warning(
            "Moved job to dead letter",
            extra={"job_id": job_id, "queue": record.queue, "attempts": record.attempts},
        )
        return record.model_copy(update={"state": JobState.DEAD})

    async def requeue_dead_job(self, job_id: str) -> JobRecord:
        """
        Send a dead job back to its original queue with a clean slate.

        Raises:
            JobNotFoundError: If the job is not in the dead-letter structure.
            RecordInconsistencyError: If the dead-lettered job has no record.
        """
        record = await self._require_record(job_id, DEAD_LETTER_KEY)

        tx = self._store.transaction()
        tx.claim(DEAD_LETTER_KEY, job_id)
        reset = await self._reset_to_waiting(tx, record)
        if not await tx.execute():
            raise JobNotFoundError(job_id, DEAD_LETTER_KEY)

        logger.info("Requeued dead job", extra={"job_id": job_id, "queue": record.queue})
        return reset

    async def _require_record(self, job_id: str, index: str) -> JobRecord:
        """
        Load the record of a job that an operator action expects in `index`.

        Nothing is removed here; the index membership is claimed again inside
        the transaction that moves the job.
        """
        record = await self.get_job(job_id)
        if record is not None:
            return record

        if job_id not in await self._store.lrange(index, 0, -1):
            raise JobNotFoundError(job_id, index)

        logger.error(
            "Indexed job has no record",
            extra={"job_id": job_id, "collection": index},
        )
        raise RecordInconsistencyError(job_id, index)

    async def _reset_to_waiting(self, tx: StoreTransaction, record: JobRecord) -> JobRecord:
        now = self._clock()
        tx.hset(
            job_key(record.id),
            {
                "state": JobState.WAITING.value,
                "attempts": "0",
                "error": "",
                "queued_at": now.isoformat(),
            },
        )
        tx.hdel(job_key(record.id), *TERMINAL_TIMESTAMP_FIELDS, "result")
        await self._priority.insert(record.queue, record.id, record.priority, tx)

        return record.model_copy(
            update={
                "state": JobState.WAITING,
                "attempts": 0,
                "error": "",
                "result": None,
                "queued_at": now,
                "started_at": None,
                "completed_at": None,
                "failed_at": None,
            }
        )

    # ------------------------------------------------------------------ #
    # Pause control                                                       #
    # ------------------------------------------------------------------ #

    async def set_queue_paused(self, queue: str, paused: bool) -> None:
        await self._store.set(paused_key(queue), "1" if paused else "0")
        logger.info("Queue paused" if paused else "Queue resumed", extra={"queue": queue})

    async def is_queue_paused(self, queue: str) -> bool:
        return await self._store.get(paused_key(queue)) == "1"

    # ------------------------------------------------------------------ #
    # Reads                                                               #
    # ------------------------------------------------------------------ #

    async def get_job(self, job_id: str) -> JobRecord | None:
        """
        Fetch a job record.

        State writes for an id without a record leave a partial hash behind
        (no "id" field); that is reported as missing too.
        """
        data = await self._store.hgetall(job_key(job_id))
        if "id" not in data:
            return None
        return JobRecord.from_hash(data)

    async def _get_jobs(self, job_ids: list[str]) -> list[JobRecord]:
        records = await asyncio.gather(*(self.get_job(job_id) for job_id in job_ids))
        return [record for record in records if record is not None]

    async def list_failed_jobs(self) -> list[JobRecord]:
        """Records in the global failed index, oldest failure first."""
        return await self._get_jobs(await self._store.lrange(FAILED_INDEX_KEY, 0, -1))

    async def list_dead_letter_jobs(self) -> list[JobRecord]:
        """Records in the dead-letter structure, oldest first."""
        return await self._get_jobs(await self._store.lrange(DEAD_LETTER_KEY, 0, -1))

    async def get_queue_summary(self, queue: str) -> QueueSummary:
        waiting, active, completed, failed, paused = await asyncio.gather(
            self._priority.size(queue),
            self._store.llen(active_key(queue)),
            self._store.llen(completed_key(queue)),
            self._store.llen(failed_key(queue)),
            self.is_queue_paused(queue),
        )
        summary = QueueSummary(
            name=queue,
            waiting=waiting,
            active=active,
            completed=completed,
            failed=failed,
            paused=paused,
        )

        for state in (JobState.WAITING, JobState.ACTIVE, JobState.COMPLETED, JobState.FAILED):
            self._metrics.update_queue_depth(queue, state.value, getattr(summary, state.value))

        return summary

    async def _queue_records(self, queue: str) -> list[JobRecord]:
        waiting, active, completed, failed = await asyncio.gather(
            self._priority.job_ids(queue),
            self._store.lrange(active_key(queue), 0, -1),
            self._store.lrange(completed_key(queue), 0, -1),
            self._store.lrange(failed_key(queue), 0, -1),
        )
        return await self._get_jobs([*waiting, *active, *completed, *failed])

    async def get_queue_metrics(self, queue: str) -> QueueMetrics:
        """
        Per-state counts plus latency and outcome statistics for a queue.

        Latency is `completed_at - created_at` in milliseconds over completed
        jobs; p95 is the value at rank floor(n * 0.95) of the sorted latencies.
        """
        summary = await self.get_queue_summary(queue)
        records = await self._queue_records(queue)

        avg_latency, p95_latency = _latency_stats(records)
        success_rate, failure_rate = _rates(records)
        self._metrics.update_queue_statistics(
            queue, avg_latency, p95_latency, success_rate, failure_rate
        )

        return QueueMetrics(
            summary=summary,
            avg_latency_ms=avg_latency,
            p95_latency_ms=p95_latency,
            success_rate=success_rate,
            failure_rate=failure_rate,
        )

    async def get_system_metrics(self, queues: list[str]) -> SystemMetrics:
        """Totals, rates and latency across several queues."""
        summaries = await asyncio.gather(*(self.get_queue_summary(q) for q in queues))
        per_queue = await asyncio.gather(*(self._queue_records(q) for q in queues))
        records = [record for group in per_queue for record in group]

        avg_latency, p95_latency = _latency_stats(records)
        success_rate, failure_rate = _rates(records)

        return SystemMetrics(
            waiting=sum(s.waiting for s in summaries),
            active=sum(s.active for s in summaries),
            completed=sum(s.completed for s in summaries),
            failed=sum(s.failed for s in summaries),
            total_jobs=sum(s.total for s in summaries),
            avg_latency_ms=avg_latency,
            p95_latency_ms=p95_latency,
            success_rate=success_rate,
            failure_rate=failure_rate,
        )
