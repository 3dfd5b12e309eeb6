# cam_alarm/store.py
"""
Camera state store — thin async wrapper around Redis.
Every call is bounded by STORE_TIMEOUT_SECONDS; Redis failures and timeouts
are re-raised as StoreError. A missing key is None, never an error.
Also owns the per-camera locks that make read-compare-write atomic
within this process.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from cam_alarm.errors import StoreError
from cam_alarm.schemas.camera_state import CameraState
from cam_alarm.utils.logger import get_logger

logger = get_logger(__name__)


def create_redis_client(url: str) -> redis.Redis:
    return redis.Redis.from_url(url, decode_responses=True)


class CameraStateStore:
    def __init__(self, client: redis.Redis, prefix: str = "cam_", timeout: float = 2.0):
        self.client = client
        self.prefix = prefix
        self.timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}   # holders + waiters per serial

    def key_for(self, serial: str) -> str:
        return f"{self.prefix}{serial}"

    def serial_from_key(self, key: str) -> str:
        return key[len(self.prefix):] if key.startswith(self.prefix) else key

    @asynccontextmanager
    async def lock_for(self, serial: str):
        """Hold the lock guarding every read-modify-write of one camera's state."""
        lock = self._locks.get(serial)
        if lock is None:
            lock = self._locks[serial] = asyncio.Lock()
        self._lock_users[serial] = self._lock_users.get(serial, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[serial] -= 1
            if not self._lock_users[serial]:
                del self._lock_users[serial]

    def release_lock(self, serial: str) -> None:
        """Forget a camera's lock once its state is gone, unless it is held or awaited."""
        if serial in self._locks and serial not in self._lock_users:
            del self._locks[serial]

    def release_idle_locks(self) -> None:
        for serial in list(self._locks):
            self.release_lock(serial)

    async def _call(self, op: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StoreError(f"{op} timed out after {self.timeout}s") from e
        except RedisError as e:
            raise StoreError(f"{op} failed: {e}") from e

    # ── Single camera ─────────────────────────────────────────────────────
    async def get_raw(self, key: str) -> Optional[str]:
        return await self._call(f"GET {key}", self.client.get(key))

    async def get_state(self, serial: str) -> Optional[CameraState]:
        """Load state for a camera. Raises StateDecodeError on a corrupt value."""
        raw = await self.get_raw(self.key_for(serial))
        if raw is None:
            return None
        return CameraState.from_json(raw)

    async def put_raw(self, key: str, value: str) -> None:
        await self._call(f"SET {key}", self.client.set(key, value))

    async def put_state(self, state: CameraState) -> None:
        await self.put_raw(self.key_for(state.serial), state.to_json())

    # ── Whole namespace ───────────────────────────────────────────────────
    async def list_state_keys(self) -> list[str]:
        async def _scan():
            return [key async for key in self.client.scan_iter(match=f"{self.prefix}*")]

        return await self._call(f"SCAN {self.prefix}*", _scan())

    async def delete_keys(self, keys: list[str]) -> int:
        if not keys:
            return 0
        return await self._call(f"DEL x{len(keys)}", self.client.delete(*keys))

    async def clear(self) -> None:
        """Clear the whole store, not just the camera namespace."""
        await self._call("FLUSHDB", self.client.flushdb())

    async def ping(self) -> bool:
        return await self._call("PING", self.client.ping())

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except RedisError as e:
            logger.warning(f"Error closing store connection: {e}")
