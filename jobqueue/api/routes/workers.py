"""
Worker liveness routes.
"""

from fastapi import APIRouter

from jobqueue.api.dependencies import Liveness
from jobqueue.types.api import WorkerResponse

router = APIRouter(tags=["Workers"])


@router.get(
    "/workers",
    response_model=list[WorkerResponse],
    summary="List workers",
    description="Every worker that has sent a heartbeat, with derived liveness.",
)
async def list_workers(liveness: Liveness) -> list[WorkerResponse]:
    workers = await liveness.list_workers()
    return [
        WorkerResponse(
            id=worker.worker_id,
            alive=worker.alive,
            status=worker.status,
            last_heartbeat=worker.last_heartbeat,
            concurrency=worker.concurrency,
            active_jobs=worker.active_jobs,
        )
        for worker in workers
    ]
