"""Shared fixtures: an in-memory stand-in for the async Redis client."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import fnmatch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from cam_alarm.store import CameraStateStore


class FakeRedis:
    """Implements the handful of redis.asyncio calls the store makes."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.fail_on: set[str] = set()   # op names that raise ConnectionError
        self.calls: list[tuple] = []
        self.closed = False

    def _check(self, op, *args):
        self.calls.append((op, *args))
        if op in self.fail_on:
            raise RedisConnectionError(f"{op} refused")

    def writes(self) -> int:
        return sum(1 for c in self.calls if c[0] == "set")

    async def get(self, key):
        self._check("get", key)
        return self.data.get(key)

    async def set(self, key, value):
        self._check("set", key, value)
        self.data[key] = value
        return True

    async def delete(self, *keys):
        self._check("delete", *keys)
        removed = 0
        for k in keys:
            if self.data.pop(k, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match="*"):
        self._check("scan_iter", match)
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def flushdb(self):
        self._check("flushdb")
        self.data.clear()
        return True

    async def ping(self):
        self._check("ping")
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis):
    return CameraStateStore(fake_redis, prefix="cam_", timeout=1.0)
