"""Alarm message decoder.

Message format (whitespace separated, fixed order):
    DATE TIME MAC IP FLAG CODE COUNTER
- DATE/TIME: device local time, e.g. 2024-01-01 10:00:00
- MAC: device MAC address
- IP: device IP address (informational)
- FLAG: 1=raise, 0=clear
- CODE: alarm status code, 0=normal
- COUNTER: sequence counter, not interpreted
"""

from datetime import datetime, timedelta, timezone, tzinfo

from app.integrations.alarms.protocols import (
    AlarmEvent,
    AlarmTransition,
    MalformedEvent,
    normalize_mac,
)

FIELD_COUNT = 7


class AlarmMessageDecoder:
    """Decodes raw alarm channel messages into AlarmEvent objects.

    Devices report local time without a zone, so every timestamp is
    qualified with a fixed, configured offset.
    """

    def __init__(self, utc_offset_minutes: int = 540):
        self.tz: tzinfo = timezone(timedelta(minutes=utc_offset_minutes))

    def decode(self, raw_data: bytes | str) -> AlarmEvent:
        """
        Decode one alarm message.

        Args:
            raw_data: Message payload (bytes or string)

        Returns:
            Parsed AlarmEvent

        Raises:
            MalformedEvent: If the message is incomplete or a field is invalid
        """
        if isinstance(raw_data, bytes):
            try:
                data = raw_data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedEvent(f"Alarm message is not valid UTF-8: {e}", raw_data)
        else:
            data = raw_data

        fields = data.split()
        if len(fields) < FIELD_COUNT:
            raise MalformedEvent(
                f"Expected {FIELD_COUNT} fields, got {len(fields)}", raw_data
            )

        date_str, time_str, mac, ip, flag_str, code_str, counter = fields[:FIELD_COUNT]

        occurred_at = self._parse_timestamp(date_str, time_str, raw_data)

        try:
            flag = int(flag_str)
            code = int(code_str)
        except ValueError:
            raise MalformedEvent(
                f"Flag and code must be integers: flag={flag_str!r} code={code_str!r}",
                raw_data,
            )

        try:
            transition = AlarmTransition(flag)
        except ValueError:
            raise MalformedEvent(f"Unknown transition flag: {flag}", raw_data)

        if code < 0:
            raise MalformedEvent(f"Alarm code must be non-negative: {code}", raw_data)

        return AlarmEvent(
            occurred_at=occurred_at,
            device_mac=normalize_mac(mac),
            device_ip=ip,
            transition=transition,
            code=code,
            counter=counter,
        )

    def _parse_timestamp(self, date_str: str, time_str: str, raw_data: bytes | str) -> datetime:
        """Combine date and time fields into a zone-qualified timestamp."""
        try:
            value = datetime.fromisoformat(f"{date_str.replace('/', '-')}T{time_str}")
        except ValueError:
            raise MalformedEvent(f"Invalid timestamp: {date_str} {time_str}", raw_data)

        if value.tzinfo is None:
            value = value.replace(tzinfo=self.tz)
        return value


def parse_alarm_message(raw_data: bytes | str, utc_offset_minutes: int = 540) -> AlarmEvent:
    """Parse a single alarm message with a one-off decoder."""
    return AlarmMessageDecoder(utc_offset_minutes).decode(raw_data)
