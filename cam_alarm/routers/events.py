# cam_alarm/routers/events.py
"""
Camera event webhook.
POST /events/camera — receives events from all cameras (XML or JSON).

Only a malformed payload is reported back (400, plain-text reason).
Every other outcome is an empty 200: store failures are operational and
logged, they never change what the camera sees.
"""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse

from cam_alarm.context import AppContext, get_context
from cam_alarm.errors import EventParseError, StoreError
from cam_alarm.services.event_parser import parse_camera_event
from cam_alarm.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/events/camera", summary="Camera webhook — debounced event intake")
async def receive_camera_event(request: Request, ctx: AppContext = Depends(get_context)):
    raw_body = await request.body()
    content_type = request.headers.get("content-type", "")

    try:
        event = parse_camera_event(
            raw_body,
            content_type,
            fmt=ctx.settings.EVENT_FORMAT,
            stamp_receipt_time=ctx.settings.STAMP_RECEIPT_TIME,
        )
    except EventParseError as e:
        logger.info(f"Rejected payload ({len(raw_body)} bytes, {content_type or 'no content-type'}): {e}")
        return PlainTextResponse(str(e), status_code=400)

    try:
        decision = await ctx.engine.evaluate(event)
    except StoreError as e:
        logger.error(f"[{event.serial}] Event NOT evaluated, store unavailable: {event.to_archive_line()} ({e})")
        return Response(status_code=200)

    if decision.accepted:
        logger.info(f"Sending {event.serial} {event.timestamp} (count={decision.state.count}, {decision.reason})")
        ctx.sink.submit(event)
    else:
        logger.debug(f"Not sending {event.serial} {event.timestamp}")
    return Response(status_code=200)
