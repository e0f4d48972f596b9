"""
Job-related type definitions for internal use.
"""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from jobqueue.constants import DEFAULT_PRIORITY, JobState

# Record fields that hold JSON-encoded values in the store hash
_JSON_FIELDS = ("payload", "result")

# Timestamps cleared when a job is reset back to waiting
TERMINAL_TIMESTAMP_FIELDS = ("started_at", "completed_at", "failed_at")


class JobRecord(BaseModel):
    """
    A single unit of work and its lifecycle bookkeeping.

    Stored as a flat string hash; `payload` and `result` are JSON-encoded and
    timestamps are ISO-8601. Fields that are unset are absent from the hash.
    """

    id: str
    queue: str
    type: str
    payload: Any = None
    priority: int = DEFAULT_PRIORITY
    state: JobState = JobState.WAITING
    attempts: int = Field(default=0, ge=0)
    error: str | None = None
    result: Any = None
    created_at: datetime | None = None
    queued_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None

    def to_hash(self) -> dict[str, str]:
        """Flatten the record into store hash fields, skipping unset values."""
        fields: dict[str, str] = {}
        for name, value in self.model_dump(mode="json").items():
            if value is None:
                continue
            if name in _JSON_FIELDS:
                fields[name] = json.dumps(value)
            else:
                fields[name] = str(value)
        return fields

    @classmethod
    def from_hash(cls, data: dict[str, str]) -> "JobRecord":
        """Rebuild a record from store hash fields."""
        values: dict[str, Any] = dict(data)
        for name in _JSON_FIELDS:
            if name in values:
                values[name] = json.loads(values[name])
        return cls.model_validate(values)

    @property
    def latency_ms(self) -> float | None:
        """Milliseconds from creation to completion, if the job completed."""
        if self.created_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.created_at).total_seconds() * 1000


class WorkerStatus(BaseModel):
    """Last reported state of a worker process and its derived liveness."""

    worker_id: str
    last_heartbeat: datetime
    concurrency: int
    active_jobs: int
    alive: bool = True

    @property
    def status(self) -> str:
        return "alive" if self.alive else "dead"


class QueueSummary(BaseModel):
    """Per-state job counts for one queue."""

    name: str
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    paused: bool = False

    @property
    def total(self) -> int:
        return self.waiting + self.active + self.completed + self.failed


class QueueMetrics(BaseModel):
    """
    Aggregate statistics for a queue.

    Latencies are `completed_at - created_at` over completed jobs, in
    milliseconds. Rates are percentages over every job observed in the queue.
    """

    summary: QueueSummary
    avg_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    success_rate: float = 0.0
    failure_rate: float = 0.0


class SystemMetrics(BaseModel):
    """Totals across several queues with rates and latency over all of them."""

    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    total_jobs: int = 0
    avg_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    success_rate: float = 0.0
    failure_rate: float = 0.0
