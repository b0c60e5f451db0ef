"""Alarm event definitions and data structures."""

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum


class AlarmTransition(IntEnum):
    """Transition flag carried by an alarm message (0=clear, 1=raise)."""
    CLEAR = 0
    RAISE = 1


NO_ALARM_CODE = 0


def normalize_mac(mac: str) -> str:
    """Canonical form used for storage and registry lookups."""
    return mac.strip().upper()


class MalformedEvent(ValueError):
    """Raised when a raw alarm message cannot be parsed."""

    def __init__(self, message: str, raw: str | bytes | None = None):
        super().__init__(message)
        self.raw = raw


@dataclass(frozen=True)
class AlarmEvent:
    """One parsed alarm message.

    occurred_at is the device-local time qualified with the configured
    offset. counter is carried through for logging only.
    """
    occurred_at: datetime
    device_mac: str
    device_ip: str
    transition: AlarmTransition
    code: int
    counter: str = ""

    @property
    def is_heartbeat(self) -> bool:
        """Code 0 reports normal status and carries no alarm information."""
        return self.code == NO_ALARM_CODE
