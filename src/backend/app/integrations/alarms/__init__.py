"""Device Alarm Channel Integration.

Decodes the plain-text alarm messages devices publish and provides the
status code table used when presenting them.
"""

from app.integrations.alarms.protocols import (
    AlarmEvent,
    AlarmTransition,
    MalformedEvent,
    NO_ALARM_CODE,
    normalize_mac,
)
from app.integrations.alarms.codes import AlarmCodeTable, DEFAULT_ALARM_CODES
from app.integrations.alarms.event_parser import AlarmMessageDecoder, parse_alarm_message

__all__ = [
    "AlarmEvent",
    "AlarmTransition",
    "MalformedEvent",
    "NO_ALARM_CODE",
    "normalize_mac",
    "AlarmCodeTable",
    "DEFAULT_ALARM_CODES",
    "AlarmMessageDecoder",
    "parse_alarm_message",
]
