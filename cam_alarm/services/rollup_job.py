# cam_alarm/services/rollup_job.py
"""
Rollup job — snapshots every camera state into a dated file and resets tracking.

Each run appends one {"data": [...]} document to <EVENTS_DIR>/<YYYY-MM-DD>.json.
Several runs on the same day append several documents to the same file.

Clear modes:
  flush — clear the whole store after the write attempt
  keys  — delete exactly the snapshotted keys, each under its camera lock,
          so an acceptance racing the rollup is never silently erased

A failing run is logged and abandoned; the next trigger tries again.
"""

import asyncio
import os
from dataclasses import dataclass
from datetime import date
from typing import Optional

from cam_alarm.errors import ArchiveWriteError, StateDecodeError, StoreError
from cam_alarm.schemas.camera_state import CameraState, RollupBatch
from cam_alarm.services.archival_sink import append_line
from cam_alarm.store import CameraStateStore
from cam_alarm.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RollupResult:
    records: int = 0
    skipped: int = 0
    path: Optional[str] = None   # set only when a batch was written
    cleared: bool = False
    error: Optional[str] = None


class RollupJob:
    def __init__(self, store: CameraStateStore, events_dir: str, clear_mode: str = "keys"):
        if clear_mode not in ("keys", "flush"):
            raise ValueError(f"unknown clear mode {clear_mode!r}")
        self.store = store
        self.events_dir = events_dir
        self.clear_mode = clear_mode

    def path_for(self, day: date) -> str:
        return os.path.join(self.events_dir, f"{day.isoformat()}.json")

    async def run(self, today: Optional[date] = None) -> RollupResult:
        today = today or date.today()
        result = RollupResult()
        logger.info("[ROLLUP] Starting rollup")

        try:
            keys = await self.store.list_state_keys()
        except StoreError as e:
            logger.error(f"[ROLLUP] Enumeration failed, skipping this cycle: {e}")
            result.error = str(e)
            return result

        batch = RollupBatch()
        snapshot: dict[str, CameraState] = {}
        for key in keys:
            try:
                raw = await self.store.get_raw(key)
                if raw is None:
                    continue   # deleted since SCAN
                state = CameraState.from_json(raw)
            except (StoreError, StateDecodeError) as e:
                logger.warning(f"[ROLLUP] Skipping {key}: {e}")
                result.skipped += 1
                continue
            batch.add(state)
            snapshot[key] = state
        result.records = len(batch.data)

        if batch.data:
            path = self.path_for(today)
            try:
                await asyncio.to_thread(self._write_batch, path, batch)
            except ArchiveWriteError as e:
                logger.error(f"[ROLLUP] Snapshot write failed, state kept for next cycle: {e}")
                result.error = str(e)
                return result
            result.path = path
            logger.info(f"[ROLLUP] Wrote {result.records} camera states → {path}")

        try:
            if self.clear_mode == "flush":
                await self.store.clear()
                self.store.release_idle_locks()
            else:
                await self._delete_snapshotted(snapshot)
            result.cleared = True
        except StoreError as e:
            logger.error(f"[ROLLUP] Clearing store failed: {e}")
            result.error = str(e)

        return result

    async def _delete_snapshotted(self, snapshot: dict[str, CameraState]) -> None:
        """
        Delete each snapshotted key unless it was accepted again after the read.
        A newer state is kept with only the post-snapshot acceptances counted,
        so its debounce window survives and nothing is archived twice.
        """
        for key, snapped in snapshot.items():
            serial = self.store.serial_from_key(key)
            async with self.store.lock_for(serial):
                raw = await self.store.get_raw(key)
                try:
                    current = CameraState.from_json(raw) if raw is not None else None
                except StateDecodeError:
                    current = None
                deleted = current is None or current == snapped
                if deleted:
                    await self.store.delete_keys([key])
                else:
                    carried = max(current.count - snapped.count, 0)
                    await self.store.put_raw(key, current.model_copy(update={"count": carried}).to_json())
                    logger.info(f"[ROLLUP] {key} accepted during rollup, keeping {carried} new event(s)")
            if deleted:
                self.store.release_lock(serial)

    def _write_batch(self, path: str, batch: RollupBatch) -> None:
        try:
            os.makedirs(self.events_dir, exist_ok=True)
        except OSError as e:
            raise ArchiveWriteError(f"cannot create {self.events_dir}: {e}") from e
        append_line(path, batch.to_json())
