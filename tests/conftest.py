"""Shared fixtures: an in-memory Redis double with a controllable clock."""

import math
from typing import Any, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from token_session import SessionManagerBuilder


class FakeRedis:
    """Implements the subset of ``redis.asyncio.Redis`` the package uses."""

    def __init__(self, now: float = 1_700_000_000.0, *, decode_responses: bool = True) -> None:
        self._decode = decode_responses
        self._data: dict[str, Any] = {}
        self._expiry: dict[str, float] = {}
        self._now = now
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self.closed = False

    def _reply(self, value):
        if value is None or self._decode:
            return value
        return value.encode("utf-8")

    def time(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds

    def fail(self, *commands: str) -> None:
        self.failing.update(commands)

    def raw(self, key: str):
        self._purge_if_expired(key)
        return self._data.get(key)

    def _check(self, command: str) -> None:
        self.calls.append(command)
        if command in self.failing:
            raise RedisConnectionError(f"{command} failed")

    def _purge_if_expired(self, key: str) -> None:
        expiry = self._expiry.get(key)
        if expiry is not None and expiry <= self._now:
            self._data.pop(key, None)
            self._expiry.pop(key, None)

    async def ping(self):
        self._check("ping")
        return True

    async def aclose(self):
        self.closed = True

    async def get(self, key: str) -> Optional[str]:
        self._check("get")
        self._purge_if_expired(key)
        value = self._data.get(key)
        return self._reply(value) if isinstance(value, str) else None

    async def set(self, key: str, value: str, ex: Optional[int] = None):
        self._check("set")
        self._data[key] = str(value)
        self._expiry.pop(key, None)
        if ex is not None:
            self._expiry[key] = self._now + ex
        return True

    async def expire(self, key: str, seconds: int) -> bool:
        self._check("expire")
        self._purge_if_expired(key)
        if key not in self._data:
            return False
        self._expiry[key] = self._now + seconds
        return True

    async def ttl(self, key: str) -> int:
        self._check("ttl")
        self._purge_if_expired(key)
        if key not in self._data:
            return -2
        expiry = self._expiry.get(key)
        if expiry is None:
            return -1
        return math.ceil(expiry - self._now)

    async def delete(self, *keys: str) -> int:
        self._check("delete")
        removed = 0
        for key in keys:
            self._purge_if_expired(key)
            if self._data.pop(key, None) is not None:
                removed += 1
            self._expiry.pop(key, None)
        return removed

    async def hset(self, key: str, field: str, value: Any) -> int:
        self._check("hset")
        self._purge_if_expired(key)
        mapping = self._data.setdefault(key, {})
        added = 0 if field in mapping else 1
        mapping[field] = str(value)
        return added

    async def hget(self, key: str, field: str) -> Optional[str]:
        self._check("hget")
        self._purge_if_expired(key)
        return self._reply((self._data.get(key) or {}).get(field))

    async def hgetall(self, key: str) -> dict[str, str]:
        self._check("hgetall")
        self._purge_if_expired(key)
        return {self._reply(k): self._reply(v) for k, v in (self._data.get(key) or {}).items()}

    async def hdel(self, key: str, *fields: str) -> int:
        self._check("hdel")
        self._purge_if_expired(key)
        mapping = self._data.get(key)
        if not mapping:
            return 0
        removed = sum(1 for field in fields if mapping.pop(field, None) is not None)
        if not mapping:
            self._data.pop(key, None)
            self._expiry.pop(key, None)
        return removed

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)


class FakePipeline:
    """Queues commands and applies them all-or-nothing on ``execute``."""

    def __init__(self, redis_client: FakeRedis) -> None:
        self._redis = redis_client
        self._commands: list[tuple[str, tuple, dict]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._commands.clear()

    def __getattr__(self, name: str):
        if not hasattr(FakeRedis, name):
            raise AttributeError(name)

        def queue(*args, **kwargs):
            self._commands.append((name, args, kwargs))
            return self

        return queue

    async def execute(self):
        for name, _, _ in self._commands:
            if name in self._redis.failing:
                self._commands.clear()
                raise RedisConnectionError(f"EXEC aborted: {name} failed")
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._commands.clear()
        return results


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def builder(fake_redis: FakeRedis) -> SessionManagerBuilder:
    return SessionManagerBuilder(fake_redis).clock(fake_redis.time).background_maintenance(False)


@pytest.fixture
def bytes_redis() -> FakeRedis:
    """A client created without ``decode_responses``, as redis-py defaults."""
    return FakeRedis(decode_responses=False)
