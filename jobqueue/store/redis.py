"""
RedisStore: shared store adapter over redis.asyncio.

Command mapping
---------------
  zpopmin      → ZPOPMIN key 1   (atomic remove-and-return, safe across processes)
  lrem         → LREM key 0 value
  transaction  → MULTI ... EXEC pipeline, WATCH on claimed lists

Connection and timeout errors from redis-py surface as StoreUnavailableError.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import redis.asyncio as redis
from redis.asyncio.client import Pipeline
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from jobqueue.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


@contextmanager
def _unavailable_on_error(operation: str) -> Iterator[None]:
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as exc:
        raise StoreUnavailableError(f"Redis {operation} failed", exc) from exc


class RedisTransaction:
    """
    Buffers write commands and replays them on a MULTI/EXEC pipeline.

    Claimed list keys are WATCHed; membership is checked before MULTI and the
    whole exchange is retried if a watched key changes before EXEC.
    """

    def __init__(self, client: redis.Redis):
        self._client = client
        self._commands: list[Callable[[Pipeline], object]] = []
        self._claims: list[tuple[str, str]] = []

    def set(self, key: str, value: str) -> None:
        self._commands.append(lambda pipe: pipe.set(key, value))

    def hset(self, key: str, mapping: dict[str, str]) -> None:
        if mapping:
            mapping = dict(mapping)
            self._commands.append(lambda pipe: pipe.hset(key, mapping=mapping))

    def hdel(self, key: str, *fields: str) -> None:
        if fields:
            self._commands.append(lambda pipe: pipe.hdel(key, *fields))

    def rpush(self, key: str, *values: str) -> None:
        if values:
            self._commands.append(lambda pipe: pipe.rpush(key, *values))

    def lrem(self, key: str, value: str) -> None:
        self._commands.append(lambda pipe: pipe.lrem(key, 0, value))

    def zadd(self, key: str, member: str, score: float) -> None:
        self._commands.append(lambda pipe: pipe.zadd(key, {member: score}))

    def claim(self, key: str, value: str) -> None:
        self._claims.append((key, value))

    async def execute(self) -> bool:
        with _unavailable_on_error("transaction"):
            async with self._client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        if self._claims:
                            await pipe.watch(*{key for key, _ in self._claims})
                            for key, value in self._claims:
                                if await pipe.lpos(key, value) is None:
                                    return False
                            pipe.multi()
                        for key, value in self._claims:
                            pipe.lrem(key, 0, value)
                        for command in self._commands:
                            command(pipe)
                        await pipe.execute()
                        return True
                    except WatchError:
                        logger.debug("Watched key changed, retrying transaction")
                        continue


class RedisStore:
    """
    Redis-backed shared store.

    Args:
        client: A redis.asyncio client created with decode_responses=True.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float | None = None) -> "RedisStore":
        """Create a store from a redis:// URL."""
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        with _unavailable_on_error("GET"):
            return await self._client.get(key)

    async def set(self, key: str, value: str) -> None:
        with _unavailable_on_error("SET"):
            await self._client.set(key, value)

    async def incr(self, key: str) -> int:
        with _unavailable_on_error("INCR"):
            return int(await self._client.incr(key))

    async def hgetall(self, key: str) -> dict[str, str]:
        with _unavailable_on_error("HGETALL"):
            return await self._client.hgetall(key)

    async def hset(self, key: str, mapping: dict[str, str]) -> None:
        if not mapping:
            return
        with _unavailable_on_error("HSET"):
            await self._client.hset(key, mapping=mapping)

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        with _unavailable_on_error("HINCRBY"):
            return int(await self._client.hincrby(key, field, amount))

    async def hdel(self, key: str, *fields: str) -> None:
        if not fields:
            return
        with _unavailable_on_error("HDEL"):
            await self._client.hdel(key, *fields)

    async def rpush(self, key: str, *values: str) -> None:
        if not values:
            return
        with _unavailable_on_error("RPUSH"):
            await self._client.rpush(key, *values)

    async def lrem(self, key: str, value: str) -> int:
        with _unavailable_on_error("LREM"):
            return int(await self._client.lrem(key, 0, value))

    async def lrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]:
        with _unavailable_on_error("LRANGE"):
            return await self._client.lrange(key, start, stop)

    async def llen(self, key: str) -> int:
        with _unavailable_on_error("LLEN"):
            return int(await self._client.llen(key))

    async def zadd(self, key: str, member: str, score: float) -> None:
        with _unavailable_on_error("ZADD"):
            await self._client.zadd(key, {member: score})

    async def zpopmin(self, key: str) -> tuple[str, float] | None:
        with _unavailable_on_error("ZPOPMIN"):
            popped = await self._client.zpopmin(key, 1)
        if not popped:
            return None
        member, score = popped[0]
        return member, float(score)

    async def zrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]:
        with _unavailable_on_error("ZRANGE"):
            return await self._client.zrange(key, start, stop)

    async def zcard(self, key: str) -> int:
        with _unavailable_on_error("ZCARD"):
            return int(await self._client.zcard(key))

    def transaction(self) -> RedisTransaction:
        return RedisTransaction(self._client)

    async def ping(self) -> bool:
        with _unavailable_on_error("PING"):
            return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")
