"""
Integration tests for the API endpoints.
"""

import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient

from jobqueue.constants import FAILED_INDEX_KEY, JobState


async def fail_job(app: FastAPI, job_id: str, error: str = "boom") -> None:
    """Drive a waiting job through active to failed, as a worker would."""
    manager = app.state.manager
    record = await manager.get_job(job_id)
    assert await manager.dequeue_next(record.queue) == job_id
    await manager.move_to_active(record.queue, job_id)
    await manager.record_attempt(job_id)
    await manager.move_to_failed(record.queue, job_id, error)


class TestJobAPI:
    """Integration tests for job submission and lookup."""

    @pytest_asyncio.fixture
    async def created_job(self, client: AsyncClient) -> dict:
        """Create a job for testing."""
        response = await client.post(
            "/queues/email/jobs",
            json={"type": "email", "payload": {"email": "a@example.com"}, "priority": 2},
        )
        assert response.status_code == 201
        return response.json()

    async def test_enqueue_job(self, created_job: dict):
        assert created_job["success"] is True
        assert created_job["job_id"]

    async def test_get_job(self, client: AsyncClient, created_job: dict):
        response = await client.get(f"/jobs/{created_job['job_id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == created_job["job_id"]
        assert data["queue"] == "email"
        assert data["type"] == "email"
        assert data["priority"] == 2
        assert data["state"] == JobState.WAITING
        assert data["payload"] == {"email": "a@example.com"}

    async def test_get_job_not_found(self, client: AsyncClient):
        response = await client.get("/jobs/does-not-exist")

        assert response.status_code == 404

    async def test_enqueue_defaults(self, client: AsyncClient):
        response = await client.post("/queues/default/jobs", json={})

        job = (await client.get(f"/jobs/{response.json()['job_id']}")).json()
        assert job["type"] == "default"
        assert job["priority"] == 0


class TestOperatorAPI:
    """Integration tests for retry, dead-letter and requeue."""

    async def test_retry_failed_job(self, client: AsyncClient, app: FastAPI):
        job_id = (await client.post("/queues/default/jobs", json={})).json()["job_id"]
        await fail_job(app, job_id)

        failed = (await client.get("/failed-jobs")).json()
        assert [job["id"] for job in failed] == [job_id]

        response = await client.post(f"/jobs/{job_id}/retry")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "job_id": job_id,
            "state": JobState.WAITING,
            "queue": "default",
        }
        assert (await client.get("/failed-jobs")).json() == []

        second = await client.post(f"/jobs/{job_id}/retry")
        assert second.status_code == 404
        assert second.json()["error"] == "job_not_found"

    async def test_retry_unknown_job(self, client: AsyncClient):
        response = await client.post("/jobs/nope/retry")

        assert response.status_code == 404

    async def test_retry_indexed_job_without_record(self, client: AsyncClient, app: FastAPI):
        """Test that a failed id with no record is reported and stays indexed."""
        await app.state.manager.move_to_failed("default", "ghost", "record missing")

        for _ in range(2):
            response = await client.post("/jobs/ghost/retry")
            assert response.status_code == 409
            assert response.json()["error"] == "record_inconsistency"

        assert "ghost" in await app.state.store.lrange(FAILED_INDEX_KEY)

    async def test_dead_letter_and_requeue(self, client: AsyncClient, app: FastAPI):
        job_id = (await client.post("/queues/image/jobs", json={"type": "image"})).json()["job_id"]
        await fail_job(app, job_id, "Invalid image format")

        response = await client.post(f"/jobs/{job_id}/dead-letter")
        assert response.status_code == 200
        assert response.json()["state"] == JobState.DEAD

        dead = (await client.get("/dead-jobs")).json()
        assert [job["id"] for job in dead] == [job_id]
        assert dead[0]["error"] == "Invalid image format"

        response = await client.post(f"/jobs/{job_id}/requeue")
        assert response.status_code == 200
        assert response.json()["state"] == JobState.WAITING
        assert response.json()["queue"] == "image"
        assert (await client.get("/dead-jobs")).json() == []

    async def test_requeue_unknown_job(self, client: AsyncClient):
        response = await client.post("/jobs/nope/requeue")

        assert response.status_code == 404


class TestQueueAPI:
    """Integration tests for queue control and metrics."""

    async def test_pause_and_resume(self, client: AsyncClient):
        response = await client.post("/queues/email/pause")
        assert response.json() == {"queue": "email", "paused": True}
        assert (await client.get("/queues/email/paused")).json()["paused"] is True

        response = await client.post("/queues/email/resume")
        assert response.json() == {"queue": "email", "paused": False}
        assert (await client.get("/queues/email/paused")).json()["paused"] is False

    async def test_list_queues(self, client: AsyncClient):
        await client.post("/queues/default/jobs", json={})
        await client.post("/queues/report/pause")

        response = await client.get("/queues")

        assert response.status_code == 200
        queues = {queue["name"]: queue for queue in response.json()}
        assert set(queues) == {"default", "email", "image", "report"}
        assert queues["default"]["waiting"] == 1
        assert queues["default"]["status"] == "active"
        assert queues["report"]["status"] == "paused"

    async def test_queue_metrics(self, client: AsyncClient, app: FastAPI):
        job_id = (await client.post("/queues/default/jobs", json={})).json()["job_id"]
        await client.post("/queues/default/jobs", json={})
        await fail_job(app, job_id)

        response = await client.get("/queues/default/metrics")

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["waiting"] == 1
        assert data["summary"]["failed"] == 1
        assert data["failure_rate"] == 50.0
        assert data["success_rate"] == 0.0

    async def test_system_metrics(self, client: AsyncClient):
        await client.post("/queues/default/jobs", json={})
        await client.post("/queues/email/jobs", json={"type": "email"})

        response = await client.get("/metrics/system")

        assert response.status_code == 200
        assert response.json()["waiting"] == 2
        assert response.json()["total_jobs"] == 2


class TestHealthAndWorkersAPI:
    """Integration tests for health, workers and Prometheus endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["store"] == "healthy"

    async def test_readiness_and_liveness(self, client: AsyncClient):
        assert (await client.get("/ready")).json() == {"ready": True}
        assert (await client.get("/live")).json() == {"alive": True}

    async def test_workers(self, client: AsyncClient, app: FastAPI):
        await app.state.liveness.record_heartbeat("worker-a", concurrency=2, active_jobs=1)

        response = await client.get("/workers")

        assert response.status_code == 200
        workers = response.json()
        assert len(workers) == 1
        assert workers[0]["id"] == "worker-a"
        assert workers[0]["alive"] is True
        assert workers[0]["status"] == "alive"
        assert workers[0]["active_jobs"] == 1

    async def test_prometheus_metrics(self, client: AsyncClient):
        await client.post("/queues/default/jobs", json={})
        await client.get("/queues/default/metrics")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "jobqueue_jobs_enqueued_total" in response.text
        assert 'jobqueue_queue_latency_ms{queue="default",stat="p95"}' in response.text
        assert 'jobqueue_queue_outcome_rate{queue="default",outcome="success"}' in response.text
