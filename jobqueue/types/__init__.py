"""
Type definitions for the job queue.
Contains the job data model and the API request/response bodies.
"""

from jobqueue.types.api import (
    EnqueueJobRequest,
    EnqueueJobResponse,
    ErrorResponse,
    HealthResponse,
    JobActionResponse,
    PausedResponse,
    QueueStatusResponse,
    WorkerResponse,
)
from jobqueue.types.job import (
    JobRecord,
    QueueMetrics,
    QueueSummary,
    SystemMetrics,
    WorkerStatus,
)

__all__ = [
    # API types
    "EnqueueJobRequest",
    "EnqueueJobResponse",
    "JobActionResponse",
    "QueueStatusResponse",
    "PausedResponse",
    "WorkerResponse",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "JobRecord",
    "WorkerStatus",
    "QueueSummary",
    "QueueMetrics",
    "SystemMetrics",
]
