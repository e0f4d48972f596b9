"""
Queue routes: submission, pause control and metrics.
"""

from fastapi import APIRouter

from jobqueue.api.dependencies import Manager, QueueNames
from jobqueue.types.api import (
    EnqueueJobRequest,
    EnqueueJobResponse,
    PausedResponse,
    QueueStatusResponse,
)
from jobqueue.types.job import QueueMetrics, SystemMetrics

router = APIRouter(tags=["Queues"])


@router.get(
    "/queues",
    response_model=list[QueueStatusResponse],
    summary="List queues",
    description="Per-state counts and pause status for every configured queue.",
)
async def list_queues(manager: Manager, queues: QueueNames) -> list[QueueStatusResponse]:
    summaries = [await manager.get_queue_summary(name) for name in queues]
    return [
        QueueStatusResponse(
            name=summary.name,
            waiting=summary.waiting,
            active=summary.active,
            completed=summary.completed,
            failed=summary.failed,
            status="paused" if summary.paused else "active",
        )
        for summary in summaries
    ]


@router.post(
    "/queues/{queue}/jobs",
    response_model=EnqueueJobResponse,
    status_code=201,
    summary="Submit a job",
)
async def enqueue_job(
    queue: str,
    request: EnqueueJobRequest,
    manager: Manager,
) -> EnqueueJobResponse:
    """
    Submit a job to a queue.

    Args:
        queue: Target queue name.
        request: Job type, payload and priority.
        manager: Queue manager.

    Returns:
        EnqueueJobResponse carrying the new job id.
    """
    job_id = await manager.enqueue(
        queue,
        request.type,
        request.payload,
        request.priority,
    )
    return EnqueueJobResponse(job_id=job_id)


@router.post("/queues/{queue}/pause", response_model=PausedResponse, summary="Pause a queue")
async def pause_queue(queue: str, manager: Manager) -> PausedResponse:
    await manager.set_queue_paused(queue, True)
    return PausedResponse(queue=queue, paused=True)


@router.post("/queues/{queue}/resume", response_model=PausedResponse, summary="Resume a queue")
async def resume_queue(queue: str, manager: Manager) -> PausedResponse:
    await manager.set_queue_paused(queue, False)
    return PausedResponse(queue=queue, paused=False)


@router.get("/queues/{queue}/paused", response_model=PausedResponse)
async def queue_paused(queue: str, manager: Manager) -> PausedResponse:
    return PausedResponse(queue=queue, paused=await manager.is_queue_paused(queue))


@router.get(
    "/queues/{queue}/metrics",
    response_model=QueueMetrics,
    summary="Queue metrics",
    description="Counts per state, completion latency (avg, p95) and outcome rates.",
)
async def queue_metrics(queue: str, manager: Manager) -> QueueMetrics:
    return await manager.get_queue_metrics(queue)


@router.get(
    "/metrics/system",
    response_model=SystemMetrics,
    summary="System metrics",
    description="Totals, rates and latency across every configured queue.",
)
async def system_metrics(manager: Manager, queues: QueueNames) -> SystemMetrics:
    return await manager.get_system_metrics(queues)
