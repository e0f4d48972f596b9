"""
InMemoryStore: asyncio.Lock-based shared store for tests and development.

Every command runs under a single asyncio.Lock, so each one is atomic with
respect to other coroutines on the same event loop; transactions check their
claims and apply their whole buffer while holding that lock.

Safe for many concurrent coroutines in one event loop. NOT shared across
processes; use RedisStore for multi-process deployments.
"""

import asyncio
from collections.abc import Callable


def _slice_bounds(length: int, start: int, stop: int) -> tuple[int, int]:
    """Translate inclusive Redis-style range bounds into a Python slice."""
    if start < 0:
        start = max(length + start, 0)
    end = stop + 1 if stop >= 0 else length + stop + 1
    return start, max(end, 0)


class InMemoryTransaction:
    """Buffers write commands and applies them under the store lock."""

    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self._commands: list[Callable[[], object]] = []
        self._claims: list[tuple[str, str]] = []

    def set(self, key: str, value: str) -> None:
        self._commands.append(lambda: self._store._set(key, value))

    def hset(self, key: str, mapping: dict[str, str]) -> None:
        mapping = dict(mapping)
        self._commands.append(lambda: self._store._hset(key, mapping))

    def hdel(self, key: str, *fields: str) -> None:
        self._commands.append(lambda: self._store._hdel(key, fields))

    def rpush(self, key: str, *values: str) -> None:
        self._commands.append(lambda: self._store._rpush(key, values))

    def lrem(self, key: str, value: str) -> None:
        self._commands.append(lambda: self._store._lrem(key, value))

    def zadd(self, key: str, member: str, score: float) -> None:
        self._commands.append(lambda: self._store._zadd(key, member, score))

    def claim(self, key: str, value: str) -> None:
        self._claims.append((key, value))

    async def execute(self) -> bool:
        async with self._store._lock:
            for key, value in self._claims:
                if value not in self._store._lists.get(key, []):
                    return False
            for key, value in self._claims:
                self._store._lrem(key, value)
            for command in self._commands:
                command()
        self._commands.clear()
        self._claims.clear()
        return True


class InMemoryStore:
    """In-process shared store holding scalars, hashes, lists and ordered sets."""

    def __init__(self) -> None:
        self._strings: dict[str, str] = {}
        self._hashes: dict[str, dict[str, str]] = {}
        self._lists: dict[str, list[str]] = {}
        self._zsets: dict[str, dict[str, float]] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Unlocked primitives, shared with InMemoryTransaction                #
    # ------------------------------------------------------------------ #

    def _set(self, key: str, value: str) -> None:
        self._strings[key] = value

    def _hset(self, key: str, mapping: dict[str, str]) -> None:
        self._hashes.setdefault(key, {}).update(mapping)

    def _hdel(self, key: str, fields: tuple[str, ...]) -> None:
        data = self._hashes.get(key)
        if data is None:
            return
        for field in fields:
            data.pop(field, None)
        if not data:
            del self._hashes[key]

    def _rpush(self, key: str, values: tuple[str, ...]) -> None:
        self._lists.setdefault(key, []).extend(values)

    def _lrem(self, key: str, value: str) -> int:
        items = self._lists.get(key, [])
        kept = [item for item in items if item != value]
        removed = len(items) - len(kept)
        if kept:
            self._lists[key] = kept
        else:
            self._lists.pop(key, None)
        return removed

    def _zadd(self, key: str, member: str, score: float) -> None:
        self._zsets.setdefault(key, {})[member] = float(score)

    def _zsorted(self, key: str) -> list[tuple[str, float]]:
        members = self._zsets.get(key, {})
        return sorted(members.items(), key=lambda item: (item[1], item[0]))

    # ------------------------------------------------------------------ #
    # StorePort                                                           #
    # ------------------------------------------------------------------ #

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._strings.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._set(key, value)

    async def incr(self, key: str) -> int:
        async with self._lock:
            value = int(self._strings.get(key, "0")) + 1
            self._strings[key] = str(value)
            return value

    async def hgetall(self, key: str) -> dict[str, str]:
        async with self._lock:
            return dict(self._hashes.get(key, {}))

    async def hset(self, key: str, mapping: dict[str, str]) -> None:
        async with self._lock:
            self._hset(key, mapping)

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        async with self._lock:
            data = self._hashes.setdefault(key, {})
            value = int(data.get(field, "0")) + amount
            data[field] = str(value)
            return value

    async def hdel(self, key: str, *fields: str) -> None:
        async with self._lock:
            self._hdel(key, fields)

    async def rpush(self, key: str, *values: str) -> None:
        async with self._lock:
            self._rpush(key, values)

    async def lrem(self, key: str, value: str) -> int:
        async with self._lock:
            return self._lrem(key, value)

    async def lrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]:
        async with self._lock:
            items = self._lists.get(key, [])
            begin, end = _slice_bounds(len(items), start, stop)
            return list(items[begin:end])

    async def llen(self, key: str) -> int:
        async with self._lock:
            return len(self._lists.get(key, []))

    async def zadd(self, key: str, member: str, score: float) -> None:
        async with self._lock:
            self._zadd(key, member, score)

    async def zpopmin(self, key: str) -> tuple[str, float] | None:
        async with self._lock:
            ordered = self._zsorted(key)
            if not ordered:
                return None
            member, score = ordered[0]
            del self._zsets[key][member]
            if not self._zsets[key]:
                del self._zsets[key]
            return member, score

    async def zrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]:
        async with self._lock:
            ordered = self._zsorted(key)
            begin, end = _slice_bounds(len(ordered), start, stop)
            return [member for member, _ in ordered[begin:end]]

    async def zcard(self, key: str) -> int:
        async with self._lock:
            return len(self._zsets.get(key, {}))

    def transaction(self) -> InMemoryTransaction:
        return InMemoryTransaction(self)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None
