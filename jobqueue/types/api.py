"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from jobqueue.constants import DEFAULT_PRIORITY, DEFAULT_PROCESSOR, JobState


class EnqueueJobRequest(BaseModel):
    """Request body for submitting a job to a queue."""

    type: str = Field(default=DEFAULT_PROCESSOR, description="Job type, selects the processor")
    payload: Any = Field(default=None, description="Job payload data")
    priority: int = Field(default=DEFAULT_PRIORITY, description="Lower values are served first")


class EnqueueJobResponse(BaseModel):
    """Response body after submitting a job."""

    success: bool = True
    job_id: str


class JobActionResponse(BaseModel):
    """Response body for retry, requeue and dead-letter actions."""

    success: bool = True
    job_id: str
    state: JobState
    queue: str


class QueueStatusResponse(BaseModel):
    """Summary of a queue as listed by the API."""

    name: str
    waiting: int
    active: int
    completed: int
    failed: int
    status: str


class PausedResponse(BaseModel):
    queue: str
    paused: bool


class WorkerResponse(BaseModel):
    """A worker's last heartbeat and derived liveness."""

    id: str
    alive: bool
    status: str
    last_heartbeat: datetime
    concurrency: int
    active_jobs: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    store: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str | None = None
