"""
StorePort: the shared store primitive set the queue is built on.

Any object satisfying this structural Protocol can act as the substrate. The
primitives mirror a Redis-style key space: scalars, hashes, lists and
score-ordered sets, each command atomic on its own.

Multi-step transitions
----------------------
Commands that must land together are buffered on a StoreTransaction and
applied as one unit by `execute()`. A transaction may also `claim` list
members: the claimed values are removed together with the buffered writes,
and if any of them is no longer present nothing is applied and `execute()`
returns False. Other read-then-decide steps use a primitive whose return
value settles the race (`zpopmin`, `hincrby`, `incr`).

Every adapter raises StoreUnavailableError when the substrate cannot be
reached.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class StoreTransaction(Protocol):
    """Buffered write commands applied atomically by `execute()`."""

    def set(self, key: str, value: str) -> None: ...

    def hset(self, key: str, mapping: dict[str, str]) -> None: ...

    def hdel(self, key: str, *fields: str) -> None: ...

    def rpush(self, key: str, *values: str) -> None: ...

    def lrem(self, key: str, value: str) -> None: ...

    def zadd(self, key: str, member: str, score: float) -> None: ...

    def claim(self, key: str, value: str) -> None:
        """Require `value` in list `key` and remove it when the transaction applies."""
        ...

    async def execute(self) -> bool:
        """
        Apply every buffered command as one atomic unit.

        Returns:
            False if a claimed value was missing, in which case nothing was applied.
        """
        ...


@runtime_checkable
class StorePort(Protocol):
    """
    Minimal interface required by the queue core.

    Implementing adapters (built-in):
      - RedisStore    : redis.asyncio client, MULTI/EXEC transactions
      - InMemoryStore : asyncio.Lock-based, for tests and single-process use
    """

    # Scalars
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def incr(self, key: str) -> int: ...

    # Hashes
    async def hgetall(self, key: str) -> dict[str, str]: ...

    async def hset(self, key: str, mapping: dict[str, str]) -> None: ...

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int: ...

    async def hdel(self, key: str, *fields: str) -> None: ...

    # Lists
    async def rpush(self, key: str, *values: str) -> None: ...

    async def lrem(self, key: str, value: str) -> int:
        """Remove every occurrence of `value`; return how many were removed."""
        ...

    async def lrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]: ...

    async def llen(self, key: str) -> int: ...

    # Ordered sets
    async def zadd(self, key: str, member: str, score: float) -> None: ...

    async def zpopmin(self, key: str) -> tuple[str, float] | None:
        """Atomically remove and return the lowest-scored member, or None if empty."""
        ...

    async def zrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]: ...

    async def zcard(self, key: str) -> int: ...

    # Lifecycle
    def transaction(self) -> StoreTransaction: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...
