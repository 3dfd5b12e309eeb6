# cam_alarm/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
Values are read once at startup and fixed for the process lifetime.
"""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_IP: str = "0.0.0.0"
    BACKEND_PORT: int = 8080
    COMPRESS_RESPONSES: bool = False   # gzip responses when enabled

    # ── Store (Redis) ─────────────────────────────────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    STATE_KEY_PREFIX: str = "cam_"
    STORE_TIMEOUT_SECONDS: float = 2.0
    STORE_LOOKUP_RETRIES: int = 3
    STORE_RETRY_BACKOFF_SECONDS: float = 0.2   # doubles on each retry

    # ── Debounce ──────────────────────────────────────────────────────────
    DEBOUNCE_WINDOW_MS: int = 20000

    # ── Ingestion ─────────────────────────────────────────────────────────
    EVENT_FORMAT: Literal["auto", "xml", "json"] = "auto"
    STAMP_RECEIPT_TIME: bool = True    # JSON events: server overwrites ts on receipt

    # ── Archival ──────────────────────────────────────────────────────────
    ARCHIVE_PATH: str = "tmp/event"
    ARCHIVE_QUEUE_SIZE: int = 1000

    # ── Rollup ────────────────────────────────────────────────────────────
    ROLLUP_ENABLED: bool = True
    ROLLUP_CADENCE: Literal["daily", "hourly"] = "daily"
    ROLLUP_CLEAR_MODE: Literal["keys", "flush"] = "keys"
    EVENTS_DIR: str = "tmp/events_files"

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
