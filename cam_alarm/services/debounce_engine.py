# cam_alarm/services/debounce_engine.py
"""
Per-camera debounce decision.

An event is accepted when it is the first one seen for its camera, or when
it arrives at least DEBOUNCE_WINDOW_MS after the last *accepted* event.
Anything earlier is suppressed without touching the stored state.
The window slides from the last acceptance; it is not a calendar bucket.

Only the state lookup is retried. A failed write is never re-evaluated:
the SET may have landed, and a second read would see this event's own
state and suppress it.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from cam_alarm.errors import StateDecodeError, StoreError
from cam_alarm.schemas.camera_event import EventRecord
from cam_alarm.schemas.camera_state import CameraState
from cam_alarm.store import CameraStateStore
from cam_alarm.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_WINDOW_MS = 20000


@dataclass
class DebounceDecision:
    accepted: bool
    state: Optional[CameraState]   # state after the decision (None only if never stored)
    reason: str                    # new | elapsed | recovered | within_window
    persisted: bool = True         # False when the accepting write failed


class DebounceEngine:
    def __init__(
        self,
        store: CameraStateStore,
        window_ms: int = DEFAULT_WINDOW_MS,
        lookup_retries: int = 1,
        retry_backoff: float = 0.0,
    ):
        self.store = store
        self.window_ms = window_ms
        self.lookup_retries = max(lookup_retries, 1)
        self.retry_backoff = retry_backoff

    async def _lookup(self, serial: str) -> Optional[CameraState]:
        """get_state with doubling backoff on StoreError. Decode errors are not retried."""
        backoff = self.retry_backoff
        for attempt in range(1, self.lookup_retries + 1):
            try:
                return await self.store.get_state(serial)
            except StoreError as e:
                if attempt == self.lookup_retries:
                    raise
                logger.warning(f"[{serial}] Store lookup failed (attempt {attempt}/{self.lookup_retries}): {e}. "
                               f"Retry in {backoff}s")
                await asyncio.sleep(backoff)
                backoff *= 2

    async def _persist(self, event: EventRecord, state: CameraState, reason: str) -> DebounceDecision:
        try:
            await self.store.put_state(state)
        except StoreError as e:
            logger.error(f"[{event.serial}] Accepted but state NOT confirmed stored: "
                         f"{event.to_archive_line()} ({e})")
            return DebounceDecision(True, state, reason, persisted=False)
        return DebounceDecision(True, state, reason)

    async def evaluate(self, event: EventRecord) -> DebounceDecision:
        """
        Decide accept/suppress for one event and persist the new state on accept.
        Exactly one store write on acceptance, none on suppression.
        StoreError propagates only when every lookup attempt failed.
        """
        async with self.store.lock_for(event.serial):
            reason = "new"
            try:
                existing = await self._lookup(event.serial)
            except StateDecodeError as e:
                logger.warning(f"[{event.serial}] Corrupt state treated as absent: {e}")
                existing = None
                reason = "recovered"

            if existing is None:
                state = CameraState(serial=event.serial, last_ts=event.timestamp, count=1)
                return await self._persist(event, state, reason)

            if event.timestamp < existing.last_ts + self.window_ms:
                return DebounceDecision(False, existing, "within_window")

            return await self._persist(event, existing.accept(event.timestamp), "elapsed")
