# cam_alarm/errors.py
"""
Exception hierarchy shared by the ingestion path and the rollup job.
Only EventParseError is ever reported back to a camera client.
"""


class CamAlarmError(Exception):
    """Base class for all gateway errors."""


class EventParseError(CamAlarmError):
    """Inbound payload could not be turned into an EventRecord."""


class StoreError(CamAlarmError):
    """Store call failed or timed out (never raised for a missing key)."""


class StateDecodeError(CamAlarmError):
    """A stored camera state value is present but not well-formed."""


class ArchiveWriteError(CamAlarmError):
    """Appending a record to an archive destination failed."""
