"""Alarm record model (TimescaleDB hypertable on started_at)."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, UTCDateTime


class AlarmState(str, Enum):
    """Lifecycle state of an alarm record."""

    OPEN = "open"
    CLOSED = "closed"


class AlarmStateError(Exception):
    """Raised when a record is moved through an invalid state transition."""

    pass


class AlarmRecord(Base):
    """One alarm occurrence or clearance for a device.

    A record is OPEN while stopped_at is unset and CLOSED once it is set.
    Clearance records are born CLOSED. Records are never reopened.

    CRITICAL: started_at is part of the primary key because the table is a
    hypertable partitioned (and expired) on it.
    """

    __tablename__ = "alarm_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    started_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        primary_key=True,
        nullable=False,
        index=True,
    )
    stopped_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Device identity
    device_mac: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    device_ip: Mapped[str] = mapped_column(String(45), nullable=False, index=True)
    serial: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Raw status code; descriptions are resolved when presenting
    code: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_alarm_records_device_active", "device_mac", "device_ip", "active"),
    )

    def __repr__(self) -> str:
        return (
            f"<AlarmRecord(id={self.id}, mac={self.device_mac}, code={self.code}, "
            f"state={self.state.value})>"
        )

    @hybrid_property
    def is_open(self) -> bool:
        """OPEN until stopped_at is set; usable in bulk UPDATE/SELECT filters."""
        return self.stopped_at is None

    @is_open.inplace.expression
    @classmethod
    def _is_open_expression(cls):
        return cls.stopped_at.is_(None)

    @property
    def state(self) -> AlarmState:
        return AlarmState.OPEN if self.is_open else AlarmState.CLOSED

    def close(self, stopped_at: datetime) -> None:
        """Move a single loaded OPEN record to CLOSED.

        The reconciliation engine closes rows in bulk with the same rule
        (``is_open`` and ``active``); this is the per-instance form.
        """
        if self.state is AlarmState.CLOSED:
            raise AlarmStateError(f"Alarm record {self.id} is already closed")
        self.active = False
        self.stopped_at = stopped_at
