# cam_alarm/services/scheduler.py
"""
Recurring trigger for the rollup job.
Fires at every local midnight (daily) or top of the hour (hourly).
A failing callback is logged and the trigger keeps running.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from cam_alarm.utils.logger import get_logger

logger = get_logger(__name__)

CADENCES = ("daily", "hourly")


def next_fire_time(now: datetime, cadence: str) -> datetime:
    """First calendar boundary strictly after now."""
    if cadence == "daily":
        return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
    if cadence == "hourly":
        return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    raise ValueError(f"unknown cadence {cadence!r}, expected one of {CADENCES}")


class RecurringTrigger:
    def __init__(
        self,
        callback: Callable[[], Awaitable[object]],
        cadence: str = "daily",
        clock: Callable[[], datetime] = datetime.now,
    ):
        next_fire_time(datetime.now(), cadence)   # validate early
        self.callback = callback
        self.cadence = cadence
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"rollup-{self.cadence}")
        logger.info(f"⏰ Rollup scheduled ({self.cadence}), next at {next_fire_time(self.clock(), self.cadence)}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def fire(self) -> None:
        """Invoke the callback once, never letting its failure escape."""
        try:
            await self.callback()
        except Exception as e:
            logger.error(f"Scheduled task failed, will retry next cycle: {e}", exc_info=True)

    async def _loop(self) -> None:
        while True:
            target = next_fire_time(self.clock(), self.cadence)
            remaining = (target - self.clock()).total_seconds()
            # wall clock may lag the loop's monotonic clock; never fire early
            while remaining > 0:
                await asyncio.sleep(remaining)
                remaining = (target - self.clock()).total_seconds()
            logger.info("Scheduled rollup firing")
            await self.fire()
