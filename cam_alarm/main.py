# cam_alarm/main.py
"""
FastAPI application entry point.
Includes optional gzip, request timing, global error handler, and routers.
Run with: uvicorn cam_alarm.main:app --host 0.0.0.0 --port 8080
"""

import time

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from cam_alarm.config import settings
from cam_alarm.context import build_context
from cam_alarm.routers import events, health
from cam_alarm.utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="cam-alarm",
    description="Camera alert debounce gateway with daily rollup.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── Response compression (fixed at startup) ──────────────────────────────────
if settings.COMPRESS_RESPONSES:
    app.add_middleware(GZipMiddleware, minimum_size=500)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(events.router, prefix="/api/v1", tags=["📡 Camera Events"])
app.include_router(health.router, prefix="/api/v1", tags=["💚 Health"])

# Cameras configured with a bare host:port post to the root path
app.add_api_route("/", events.receive_camera_event, methods=["POST"], include_in_schema=False)


# ── Startup / Shutdown ────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 cam-alarm starting up...")
    if getattr(app.state, "ctx", None) is None:
        app.state.ctx = build_context(settings)
    await app.state.ctx.startup()
    logger.info(f"⏱  Debounce window: {settings.DEBOUNCE_WINDOW_MS}ms")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 cam-alarm shutting down...")
    ctx = getattr(app.state, "ctx", None)
    if ctx is not None:
        await ctx.shutdown()


def run():
    uvicorn.run(app, host=settings.BACKEND_IP, port=settings.BACKEND_PORT)


if __name__ == "__main__":
    run()
