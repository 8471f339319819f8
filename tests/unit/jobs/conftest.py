"""Fixtures for job queue tests.

``FakeRedis`` keeps strings and sorted sets in memory and implements the
subset of ``redis.asyncio.Redis`` the queue uses, with Redis ordering rules
(ties broken by member) so behavioural tests can assert on real index state.
"""

from __future__ import annotations

from typing import Any

import pytest

from quire.jobs.queue import JobQueue
from quire.observability.metrics import MetricsRegistry
from quire.store.keys import QueueKeys


class FakePipeline:
    """Buffers commands and applies them in order on ``execute``."""

    def __init__(self, redis: FakeRedis, transaction: bool) -> None:
        self._redis = redis
        self.transaction = transaction
        self._commands: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def __getattr__(self, name: str) -> Any:
        def queue_command(*args: Any, **kwargs: Any) -> FakePipeline:
            self._commands.append((name, args, kwargs))
            return self

        return queue_command

    async def execute(self) -> list[Any]:
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._commands = []
        self._redis.executed_pipelines.append(self.transaction)
        return results

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *args: Any) -> None:
        self._commands = []


class FakeRedis:
    """In-memory stand-in for the async Redis client."""

    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.executed_pipelines: list[bool] = []
        self.closed = False

    # Strings

    async def set(self, key: str, value: bytes | str, ex: int | None = None) -> bool:
        self.strings[key] = value.decode() if isinstance(value, bytes) else value
        self.ttls[key] = ex
        return True

    async def get(self, key: str) -> str | None:
        return self.strings.get(key)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.strings.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    # Sorted sets

    def _sorted(self, key: str, reverse: bool = False) -> list[tuple[str, float]]:
        items = sorted(self.zsets.get(key, {}).items(), key=lambda kv: (kv[1], kv[0]))
        return list(reversed(items)) if reverse else items

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zrem(self, key: str, *members: str) -> int:
        zset = self.zsets.get(key, {})
        removed = 0
        for member in members:
            if zset.pop(member, None) is not None:
                removed += 1
        return removed

    async def zcard(self, key: str) -> int:
        return len(self.zsets.get(key, {}))

    async def zscore(self, key: str, member: str) -> float | None:
        return self.zsets.get(key, {}).get(member)

    async def zrevrange(self, key: str, start: int, end: int) -> list[str]:
        items = self._sorted(key, reverse=True)
        stop = None if end == -1 else end + 1
        return [member for member, _ in items[start:stop]]

    async def zrangebyscore(
        self,
        key: str,
        min: float,
        max: float,
        start: int | None = None,
        num: int | None = None,
    ) -> list[str]:
        members = [m for m, score in self._sorted(key) if min <= score <= max]
        if start is not None and num is not None:
            members = members[start : start + num]
        return members

    async def zremrangebyscore(self, key: str, min: float, max: float) -> int:
        zset = self.zsets.get(key, {})
        doomed = [m for m, score in zset.items() if min <= score <= max]
        for member in doomed:
            del zset[member]
        return len(doomed)

    # Connection

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self, transaction)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True

    # Test helpers

    def members(self, key: str) -> list[str]:
        """Members of a sorted set in ascending score order."""
        return [member for member, _ in self._sorted(key)]

    def expire(self, key: str) -> None:
        """Simulate a record reaching its TTL."""
        self.strings.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def keys() -> QueueKeys:
    return QueueKeys("test")


@pytest.fixture
def queue(fake_redis: FakeRedis, keys: QueueKeys) -> JobQueue:
    """Queue over the in-memory store with metrics disabled."""
    return JobQueue(fake_redis, keys=keys, metrics=MetricsRegistry())
