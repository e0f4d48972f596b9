"""
Pytest configuration and shared fixtures.
"""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from jobqueue.api.main import create_app
from jobqueue.constants import DEAD_LETTER_KEY, FAILED_INDEX_KEY, JobState
from jobqueue.errors import StoreUnavailableError
from jobqueue.liveness import LivenessRegistry
from jobqueue.queue.keys import active_key, completed_key, failed_key
from jobqueue.queue.manager import QueueManager
from jobqueue.queue.priority import PriorityQueue
from jobqueue.store.memory import InMemoryStore, InMemoryTransaction
from jobqueue.worker.processors import ProcessorRegistry


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InterruptibleStore(InMemoryStore):
    """In-memory store whose next transactions can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.failing_transactions = 0

    def fail_transactions(self, count: int = 1) -> None:
        """Make the next `count` transaction executions raise StoreUnavailableError."""
        self.failing_transactions = count

    def transaction(self) -> InMemoryTransaction:
        return InterruptibleTransaction(self)


class InterruptibleTransaction(InMemoryTransaction):
    async def execute(self) -> bool:
        if self._store.failing_transactions:
            self._store.failing_transactions -= 1
            raise StoreUnavailableError("transaction failed", ConnectionError("reset"))
        return await super().execute()


async def eventually(
    predicate: Callable[[], Awaitable[bool]],
    timeout: float = 3.0,
    interval: float = 0.01,
) -> None:
    """Poll an async predicate until it holds or the timeout expires."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not await predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


async def collections_holding(store: InMemoryStore, queue: str, job_id: str) -> set[JobState]:
    """States whose physical collection currently holds the job id."""
    held: set[JobState] = set()
    if await PriorityQueue(store).contains(queue, job_id):
        held.add(JobState.WAITING)
    if job_id in await store.lrange(active_key(queue)):
        held.add(JobState.ACTIVE)
    if job_id in await store.lrange(completed_key(queue)):
        held.add(JobState.COMPLETED)
    in_failed_list = job_id in await store.lrange(failed_key(queue))
    in_failed_index = job_id in await store.lrange(FAILED_INDEX_KEY)
    if in_failed_list and in_failed_index:
        held.add(JobState.FAILED)
    elif in_failed_list or in_failed_index:
        raise AssertionError(f"{job_id} is only half present in the failed collections")
    if job_id in await store.lrange(DEAD_LETTER_KEY):
        held.add(JobState.DEAD)
    return held


async def assert_consistent(manager: QueueManager, store: InMemoryStore, job_id: str) -> None:
    """The job's state field matches the single collection that holds it."""
    record = await manager.get_job(job_id)
    assert record is not None
    assert await collections_holding(store, record.queue, job_id) == {record.state}


@pytest.fixture
def store() -> InterruptibleStore:
    """Create an empty in-memory store that can simulate failed transactions."""
    return InterruptibleStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(store: InMemoryStore, clock: FakeClock) -> QueueManager:
    """Create a queue manager over the test store with a fake clock."""
    return QueueManager(store, clock=clock)


@pytest.fixture
def liveness(store: InMemoryStore, clock: FakeClock) -> LivenessRegistry:
    return LivenessRegistry(store, timeout_seconds=15, clock=clock)


@pytest.fixture
def processors() -> ProcessorRegistry:
    """Registry with an instant default processor."""
    registry = ProcessorRegistry()

    @registry.register("default")
    async def process_default(job):
        return {"processed": True, "id": job.id}

    return registry


@pytest_asyncio.fixture
async def app(store: InMemoryStore) -> AsyncGenerator[FastAPI]:
    """Create a FastAPI app serving from the test store."""
    yield create_app(store=store)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Poll an async predicate until it holds."""
    return eventually


@pytest.fixture
def check_consistent(
    manager: QueueManager, store: InMemoryStore
) -> Callable[[str], Awaitable[None]]:
    """Assert that a job's state matches the collection holding it."""

    async def check(job_id: str) -> None:
        await assert_consistent(manager, store, job_id)

    return check
