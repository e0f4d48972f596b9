"""
Priority Queue Engine.

Each queue is an ordered set scored by job priority; the lowest score is
served first. Ties are broken by insertion order: every insert draws a
per-queue sequence number and the member is stored as "<seq>:<job_id>",
zero-padded so that lexicographic member order (the ordered set's rule for
equal scores) matches insertion order.
"""

from jobqueue.queue.keys import priority_key, sequence_key
from jobqueue.store.base import StorePort, StoreTransaction

_SEQUENCE_WIDTH = 20


def encode_member(sequence: int, job_id: str) -> str:
    """Build the ordered-set member for a job inserted at `sequence`."""
    return f"{sequence:0{_SEQUENCE_WIDTH}d}:{job_id}"


def decode_member(member: str) -> str:
    """Return the job id carried by an ordered-set member."""
    return member.split(":", 1)[1]


class PriorityQueue:
    """
    Per-queue priority ordering over the shared store.

    Implements:
    - insert with a FIFO tie-break among equal priorities
    - atomic pop of the lowest-scored job id
    """

    def __init__(self, store: StorePort):
        self._store = store

    async def insert(
        self,
        queue: str,
        job_id: str,
        priority: int,
        tx: StoreTransaction | None = None,
    ) -> None:
        """
        Add a job id to the queue's ordered set.

        Args:
            queue: The queue name.
            job_id: The job identifier.
            priority: Score; lower values are dequeued first.
            tx: Optional transaction to buffer the insert on. The sequence
                number is always drawn immediately.
        """
        sequence = await self._store.incr(sequence_key(queue))
        member = encode_member(sequence, job_id)

        if tx is None:
            await self._store.zadd(priority_key(queue), member, priority)
        else:
            tx.zadd(priority_key(queue), member, priority)

    async def pop_highest(self, queue: str) -> str | None:
        """
        Atomically remove and return the job id with the lowest score.

        Returns:
            The job id, or None when the queue is empty.
        """
        popped = await self._store.zpopmin(priority_key(queue))
        if popped is None:
            return None
        member, _ = popped
        return decode_member(member)

    async def job_ids(self, queue: str) -> list[str]:
        """All waiting job ids in dequeue order."""
        members = await self._store.zrange(priority_key(queue), 0, -1)
        return [decode_member(member) for member in members]

    async def size(self, queue: str) -> int:
        return await self._store.zcard(priority_key(queue))

    async def contains(self, queue: str, job_id: str) -> bool:
        return job_id in await self.job_ids(queue)
