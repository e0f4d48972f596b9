"""
Job routes: lookup, operator actions and failure listings.
"""

from fastapi import APIRouter, HTTPException, status

from jobqueue.api.dependencies import Manager
from jobqueue.types.api import JobActionResponse
from jobqueue.types.job import JobRecord

router = APIRouter(tags=["Jobs"])


def _action_response(record: JobRecord) -> JobActionResponse:
    return JobActionResponse(job_id=record.id, state=record.state, queue=record.queue)


@router.get(
    "/jobs/{job_id}",
    response_model=JobRecord,
    summary="Get job details",
    description="Full record of a job, including its lifecycle timestamps.",
)
async def get_job(job_id: str, manager: Manager) -> JobRecord:
    """
    Get job details by ID.

    Raises:
        HTTPException: If the job does not exist.
    """
    job = await manager.get_job(job_id)

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    return job


@router.post(
    "/jobs/{job_id}/retry",
    response_model=JobActionResponse,
    summary="Retry a failed job",
    description="Send a job from the failed index back to its queue.",
)
async def retry_job(job_id: str, manager: Manager) -> JobActionResponse:
    record = await manager.retry_failed_job(job_id)
    return _action_response(record)


@router.post(
    "/jobs/{job_id}/requeue",
    response_model=JobActionResponse,
    summary="Requeue a dead job",
    description="Send a job from the dead-letter structure back to its queue.",
)
async def requeue_job(job_id: str, manager: Manager) -> JobActionResponse:
    record = await manager.requeue_dead_job(job_id)
    return _action_response(record)


@router.post(
    "/jobs/{job_id}/dead-letter",
    response_model=JobActionResponse,
    summary="Dead-letter a failed job",
)
async def dead_letter_job(job_id: str, manager: Manager) -> JobActionResponse:
    record = await manager.move_to_dead_letter(job_id)
    return _action_response(record)


@router.get("/failed-jobs", response_model=list[JobRecord], summary="List failed jobs")
async def list_failed_jobs(manager: Manager) -> list[JobRecord]:
    return await manager.list_failed_jobs()


@router.get("/dead-jobs", response_model=list[JobRecord], summary="List dead-letter jobs")
async def list_dead_jobs(manager: Manager) -> list[JobRecord]:
    return await manager.list_dead_letter_jobs()
