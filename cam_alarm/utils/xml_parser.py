# cam_alarm/utils/xml_parser.py
"""
Helpers for reading camera XML event payloads.
Cameras may or may not put their elements in a namespace (ISAPI style),
so lookups try the root's namespace first and fall back to the bare tag.
"""

import xml.etree.ElementTree as ET
from typing import Optional


def root_namespace(root: ET.Element) -> str:
    """Return '{ns}' for a namespaced root tag, or '' when there is none."""
    if root.tag.startswith("{"):
        return root.tag.split("}")[0] + "}"
    return ""


def find_text(root: ET.Element, tag: str) -> Optional[str]:
    """Find a direct child with or without the root namespace and return its stripped text."""
    ns = root_namespace(root)
    el = root.find(f"{ns}{tag}") if ns else None
    if el is None:
        el = root.find(tag)
    return el.text.strip() if el is not None and el.text and el.text.strip() else None


def parse_xml(raw_body: bytes) -> ET.Element:
    """Parse XML bytes. Raises ET.ParseError on malformed input."""
    return ET.fromstring(raw_body.decode("utf-8", errors="replace"))
