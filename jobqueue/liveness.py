"""
Liveness Registry.

Workers upsert their status on every heartbeat; readers derive liveness from
the age of the last heartbeat. Liveness is observational only: a dead
worker's active jobs are not reclaimed here.
"""

import json
import logging
from datetime import datetime, timedelta

from jobqueue.clock import Clock, utcnow
from jobqueue.constants import DEFAULT_HEARTBEAT_TIMEOUT_SECONDS, WORKER_STATUS_KEY
from jobqueue.queue.keys import heartbeat_key
from jobqueue.store.base import StorePort
from jobqueue.types.job import WorkerStatus

logger = logging.getLogger(__name__)


class LivenessRegistry:
    """
    Heartbeat storage and staleness evaluation for worker processes.

    A worker is alive while `now - last_heartbeat < timeout`. The timeout
    must exceed the heartbeat interval; with the defaults (5s interval, 15s
    timeout) two missed beats are tolerated.
    """

    def __init__(
        self,
        store: StorePort,
        timeout_seconds: float = DEFAULT_HEARTBEAT_TIMEOUT_SECONDS,
        clock: Clock | None = None,
    ):
        self._store = store
        self._timeout = timedelta(seconds=timeout_seconds)
        self._clock = clock or utcnow

    async def record_heartbeat(self, worker_id: str, concurrency: int, active_jobs: int) -> None:
        """Upsert the worker's status with last_heartbeat = now."""
        now = self._clock().isoformat()
        status = json.dumps(
            {
                "last_heartbeat": now,
                "concurrency": concurrency,
                "active_jobs": active_jobs,
            }
        )

        tx = self._store.transaction()
        tx.set(heartbeat_key(worker_id), now)
        tx.hset(WORKER_STATUS_KEY, {worker_id: status})
        await tx.execute()

        logger.debug(
            "Heartbeat recorded",
            extra={"worker_id": worker_id, "active_jobs": active_jobs},
        )

    def is_alive(self, last_heartbeat: datetime) -> bool:
        return self._clock() - last_heartbeat < self._timeout

    async def list_workers(self) -> list[WorkerStatus]:
        """Every registered worker with its derived liveness, ordered by id."""
        statuses = await self._store.hgetall(WORKER_STATUS_KEY)

        workers: list[WorkerStatus] = []
        for worker_id, raw in sorted(statuses.items()):
            data = json.loads(raw)
            last_heartbeat = datetime.fromisoformat(data["last_heartbeat"])
            workers.append(
                WorkerStatus(
                    worker_id=worker_id,
                    last_heartbeat=last_heartbeat,
                    concurrency=data["concurrency"],
                    active_jobs=data["active_jobs"],
                    alive=self.is_alive(last_heartbeat),
                )
            )
        return workers
