# cam_alarm/services/event_parser.py
"""
Parses both camera payload shapes into one EventRecord:

  XML  — <serial>, <eventType>, <dateTime> (ISO-8601)
  JSON — {"serial", "event_type", "ts"} with ts in epoch milliseconds

The strategy is picked by EVENT_FORMAT, or negotiated from the
content type / first byte when set to "auto".
"""

import time
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import ValidationError

from cam_alarm.errors import EventParseError
from cam_alarm.schemas.camera_event import EventRecord
from cam_alarm.utils.json_parser import is_json_body, parse_json_object
from cam_alarm.utils.logger import get_logger
from cam_alarm.utils.xml_parser import find_text, parse_xml

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def datetime_to_ms(dt: datetime) -> int:
    """Epoch milliseconds for a datetime; naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - EPOCH) // timedelta(milliseconds=1)


def parse_camera_event(
    raw_body: bytes,
    content_type: str = "",
    fmt: str = "auto",
    received_ms: Optional[int] = None,
    stamp_receipt_time: bool = True,
) -> EventRecord:
    """Select a parse strategy and build an EventRecord. Raises EventParseError."""
    if not raw_body or not raw_body.strip():
        raise EventParseError("empty body")
    if received_ms is None:
        received_ms = now_ms()

    if fmt == "json" or (fmt == "auto" and is_json_body(raw_body, content_type)):
        return _parse_json_event(raw_body, received_ms, stamp_receipt_time)
    return _parse_xml_event(raw_body, received_ms)


def _build(serial, event_type, ts: int) -> EventRecord:
    try:
        return EventRecord(serial=serial, event_type=event_type or "", timestamp=ts)
    except ValidationError as e:
        raise EventParseError(f"invalid event: {e.errors()[0]['msg']}") from e


def _parse_xml_event(raw_body: bytes, received_ms: int) -> EventRecord:
    try:
        root = parse_xml(raw_body)
    except ET.ParseError as e:
        raise EventParseError(f"malformed XML: {e}") from e

    serial = find_text(root, "serial")
    if serial is None:
        raise EventParseError("missing serial")

    ts = received_ms
    t = find_text(root, "dateTime")
    if t:
        try:
            ts = datetime_to_ms(datetime.fromisoformat(t.replace("Z", "+00:00")))
        except ValueError as e:
            raise EventParseError(f"invalid dateTime {t!r}") from e

    return _build(serial, find_text(root, "eventType"), ts)


def _parse_json_event(raw_body: bytes, received_ms: int, stamp_receipt_time: bool) -> EventRecord:
    try:
        data = parse_json_object(raw_body)
    except ValueError as e:
        raise EventParseError(f"malformed JSON: {e}") from e

    if "serial" not in data:
        raise EventParseError("missing serial")

    ts = data.get("ts")
    if stamp_receipt_time or ts is None:
        ts = received_ms
    elif isinstance(ts, bool) or not isinstance(ts, int):
        raise EventParseError(f"ts must be integer milliseconds, got {ts!r}")

    return _build(data["serial"], data.get("event_type"), ts)
