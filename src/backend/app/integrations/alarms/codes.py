"""Alarm status code table.

Records store the raw integer code. Descriptions are looked up here only
when a record is presented, so the table can change (or be localized)
without rewriting history.
"""

from collections.abc import Mapping
from types import MappingProxyType


DEFAULT_ALARM_CODES: dict[int, str] = {
    0: "Normal",
    1: "Power Failure",
    2: "Communication Failure",
    3: "High Temperature",
    4: "Low Temperature",
    5: "Door Open",
    6: "Fan Failure",
    7: "Low Battery",
}


class AlarmCodeTable:
    """Immutable code → description lookup, built once at startup."""

    def __init__(self, codes: Mapping[int, str] | None = None):
        source = DEFAULT_ALARM_CODES if codes is None else codes
        for code in source:
            if code < 0:
                raise ValueError(f"Alarm codes must be non-negative, got {code}")
        self._codes = MappingProxyType(dict(source))

    def __contains__(self, code: object) -> bool:
        return code in self._codes

    def __len__(self) -> int:
        return len(self._codes)

    def describe(self, code: int) -> str:
        """Return the description for a code, or a generic label if unmapped."""
        return self._codes.get(code, f"Unknown alarm (code {code})")

    def as_dict(self) -> dict[int, str]:
        return dict(self._codes)
