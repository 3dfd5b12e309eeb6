# cam_alarm/routers/health.py
"""
System health check endpoint.
Returns status of backend + store + archival writer.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from cam_alarm.context import AppContext, get_context
from cam_alarm.errors import StoreError

router = APIRouter()


@router.get("/health", summary="System health check")
async def health_check(ctx: AppContext = Depends(get_context)):
    result = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store": "unknown",
        "archive": ctx.sink.stats(),
        "rollup": {
            "cadence": ctx.settings.ROLLUP_CADENCE if ctx.trigger else "disabled",
            "clear_mode": ctx.rollup.clear_mode,
        },
    }

    try:
        await ctx.store.ping()
        result["store"] = "ok"
    except StoreError as e:
        result["store"] = f"error: {e}"
        result["status"] = "degraded"

    return result
