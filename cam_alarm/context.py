# cam_alarm/context.py
"""
Application context — every long-lived collaborator, built once at startup.
Routers receive it through the get_context dependency; shutdown() is the
single place resources are released.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from cam_alarm.config import Settings
from cam_alarm.errors import StoreError
from cam_alarm.services.archival_sink import ArchivalSink
from cam_alarm.services.debounce_engine import DebounceEngine
from cam_alarm.services.rollup_job import RollupJob
from cam_alarm.services.scheduler import RecurringTrigger
from cam_alarm.store import CameraStateStore, create_redis_client
from cam_alarm.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    store: CameraStateStore
    engine: DebounceEngine
    sink: ArchivalSink
    rollup: RollupJob
    trigger: Optional[RecurringTrigger] = None

    async def startup(self):
        try:
            await self.store.ping()
            logger.info("✅ Store reachable")
        except StoreError as e:
            logger.error(f"❌ Store not reachable at startup: {e}")
        self.sink.start()
        if self.trigger is not None:
            self.trigger.start()

    async def shutdown(self):
        if self.trigger is not None:
            await self.trigger.stop()
        await self.sink.stop()
        await self.store.close()


def build_context(settings: Settings, store: Optional[CameraStateStore] = None) -> AppContext:
    if store is None:
        store = CameraStateStore(
            create_redis_client(settings.REDIS_URL),
            prefix=settings.STATE_KEY_PREFIX,
            timeout=settings.STORE_TIMEOUT_SECONDS,
        )
    rollup = RollupJob(store, settings.EVENTS_DIR, clear_mode=settings.ROLLUP_CLEAR_MODE)
    ctx = AppContext(
        settings=settings,
        store=store,
        engine=DebounceEngine(
            store,
            window_ms=settings.DEBOUNCE_WINDOW_MS,
            lookup_retries=settings.STORE_LOOKUP_RETRIES,
            retry_backoff=settings.STORE_RETRY_BACKOFF_SECONDS,
        ),
        sink=ArchivalSink(settings.ARCHIVE_PATH, maxsize=settings.ARCHIVE_QUEUE_SIZE),
        rollup=rollup,
    )
    if settings.ROLLUP_ENABLED:
        ctx.trigger = RecurringTrigger(rollup.run, cadence=settings.ROLLUP_CADENCE)
    return ctx


def get_context(request: Request) -> AppContext:
    """FastAPI dependency — the context attached to the running app."""
    return request.app.state.ctx
