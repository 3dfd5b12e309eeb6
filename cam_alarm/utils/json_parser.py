# cam_alarm/utils/json_parser.py
"""Helpers for detecting and reading key/value (JSON) event payloads."""

import json
from typing import Any


def parse_json_object(raw_body: bytes) -> dict[str, Any]:
    """Parse JSON bytes into a dict. Raises ValueError if the body is not a JSON object."""
    data = json.loads(raw_body.decode("utf-8", errors="replace"))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def is_json_body(raw_body: bytes, content_type: str = "") -> bool:
    """Detect if the raw body is JSON (by content-type or by inspecting first byte)."""
    if "json" in content_type.lower():
        return True
    if "xml" in content_type.lower():
        return False
    stripped = raw_body.lstrip()
    return stripped.startswith(b"{") or stripped.startswith(b"[")
