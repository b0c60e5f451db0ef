"""Alarm Ledger Database Models."""

from app.models.base import Base, TimestampMixin, UTCDateTime
from app.models.alarm_record import AlarmRecord, AlarmState, AlarmStateError
from app.models.device_registration import DeviceRegistration

__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "AlarmRecord",
    "AlarmState",
    "AlarmStateError",
    "DeviceRegistration",
]
