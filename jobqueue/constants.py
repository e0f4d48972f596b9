"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobState(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - WAITING -> ACTIVE (claimed by a worker)
    - ACTIVE -> COMPLETED (processor succeeded)
    - ACTIVE -> FAILED (processor raised)
    - FAILED -> WAITING (operator retry)
    - FAILED -> DEAD (escalation)
    - DEAD -> WAITING (operator requeue)
    """

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD = "dead"


# Queues a worker listens on when none are configured
DEFAULT_QUEUES: tuple[str, ...] = ("default", "email", "image", "report")
DEFAULT_PRIORITY = 0
DEFAULT_PROCESSOR = "default"

# Worker timing defaults (seconds)
DEFAULT_CONCURRENCY = 2
DEFAULT_IDLE_BACKOFF_SECONDS = 1.0
DEFAULT_HEARTBEAT_INTERVAL_SECONDS = 5.0
DEFAULT_HEARTBEAT_TIMEOUT_SECONDS = 15.0

# Percentile reported by queue metrics
LATENCY_PERCENTILE = 0.95

# Store keys
FAILED_INDEX_KEY = "failed_jobs"
DEAD_LETTER_KEY = "dead_letter_jobs"
WORKER_STATUS_KEY = "worker:status"
HEARTBEAT_KEY_PREFIX = "worker:heartbeat:"
JOB_KEY_PREFIX = "job:"
QUEUE_KEY_PREFIX = "queue:"

# Metrics names
METRIC_JOBS_ENQUEUED = "jobqueue_jobs_enqueued_total"
METRIC_JOBS_DEQUEUED = "jobqueue_jobs_dequeued_total"
METRIC_JOBS_FINISHED = "jobqueue_jobs_finished_total"
METRIC_JOB_DURATION = "jobqueue_job_duration_seconds"
METRIC_JOBS_IN_FLIGHT = "jobqueue_jobs_in_flight"
METRIC_QUEUE_DEPTH = "jobqueue_queue_depth"
METRIC_QUEUE_LATENCY = "jobqueue_queue_latency_ms"
METRIC_QUEUE_OUTCOME_RATE = "jobqueue_queue_outcome_rate"
METRIC_RECORD_INCONSISTENCIES = "jobqueue_record_inconsistencies_total"
METRIC_WORKER_HEARTBEATS = "jobqueue_worker_heartbeats_total"
METRIC_API_REQUESTS = "jobqueue_api_requests_total"

# Trace span names
SPAN_ENQUEUE_JOB = "enqueue_job"
SPAN_DEQUEUE_JOB = "dequeue_job"
SPAN_EXECUTE_JOB = "execute_job"
