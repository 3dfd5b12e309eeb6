# cam_alarm/services/archival_sink.py
"""
Archival sink — appends accepted events to the archive log / pipe.

The ingestion path only enqueues (submit) and never waits on disk.
One writer task drains the bounded queue; a full queue drops the record,
a failed write is logged and dropped. Both are counted in stats().
"""

import asyncio
import os
from typing import Optional

from cam_alarm.errors import ArchiveWriteError
from cam_alarm.schemas.camera_event import EventRecord
from cam_alarm.utils.logger import get_logger

logger = get_logger(__name__)


def append_line(path: str, line: str) -> None:
    """Open, append one newline-terminated record, close. Raises ArchiveWriteError."""
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError as e:
        raise ArchiveWriteError(f"cannot append to {path}: {e}") from e


class ArchivalSink:
    def __init__(self, path: str, maxsize: int = 1000):
        self.path = path
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None
        self.written = 0
        self.dropped = 0
        self.failed = 0

    async def append(self, line: str) -> None:
        await asyncio.to_thread(append_line, self.path, line)

    def submit(self, record: EventRecord) -> bool:
        """Enqueue without blocking. Returns False if the record was dropped."""
        try:
            self._queue.put_nowait(record.to_archive_line())
        except asyncio.QueueFull:
            self.dropped += 1
            logger.error(f"[ARCHIVE] Queue full ({self._queue.maxsize}), dropped {record.serial}")
            return False
        return True

    def start(self) -> None:
        if self._task is None:
            parent = os.path.dirname(self.path)
            if parent:
                try:
                    os.makedirs(parent, exist_ok=True)
                except OSError as e:
                    logger.warning(f"[ARCHIVE] Cannot create {parent}: {e}")
            self._task = asyncio.create_task(self._run(), name="archival-writer")
            logger.info(f"[ARCHIVE] Writer started → {self.path}")

    async def stop(self) -> None:
        """Drain pending records, then stop the writer."""
        if self._task is None:
            return
        await self._queue.join()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"[ARCHIVE] Writer stopped ({self.written} written, {self.failed} failed)")

    async def _run(self) -> None:
        while True:
            line = await self._queue.get()
            try:
                await self.append(line)
                self.written += 1
            except ArchiveWriteError as e:
                self.failed += 1
                logger.error(f"[ARCHIVE] {e}")
            finally:
                self._queue.task_done()

    def stats(self) -> dict:
        return {
            "path": self.path,
            "queued": self._queue.qsize(),
            "written": self.written,
            "dropped": self.dropped,
            "failed": self.failed,
        }
