"""Alarm reconciliation service.

Turns parsed alarm events into alarm log rows:

    RAISE, code 0  -> ignored (normal-status heartbeat)
    CLEAR, code 0  -> ignored (all-clear heartbeat)
    RAISE, code N  -> supersede the device's active row, insert a new active row
    CLEAR, code N  -> close the device's active rows, insert a clearance row

A device is identified by its (MAC, IP) pair and has at most one active
row. Closing is a conditional UPDATE in the same transaction as the insert.
On PostgreSQL that transaction first takes an advisory lock keyed on the
device, so concurrent writers for the same device (MQTT listener, HTTP
bridge, other replicas) run one after another.
"""

from dataclasses import dataclass
from enum import Enum

import structlog
from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.integrations.alarms.protocols import AlarmEvent, AlarmTransition
from app.models.alarm_record import AlarmRecord
from app.services.device_registry_service import DeviceRegistryService, StorageReadFailure

logger = structlog.get_logger()


def device_lock_key(event: AlarmEvent) -> str:
    """Advisory lock key for the device that sent event."""
    return f"{event.device_mac}|{event.device_ip}"


class StorageWriteFailure(Exception):
    """An alarm event could not be written to the alarm log."""
    pass


class ReconciliationAction(str, Enum):
    """What processing an event did to the alarm log."""

    IGNORED = "ignored"
    RAISED = "raised"
    CLEARED = "cleared"


@dataclass
class ReconciliationOutcome:
    """Result of reconciling one event."""

    action: ReconciliationAction
    closed_count: int = 0
    record: AlarmRecord | None = None


class AlarmReconciliationService:
    """Apply alarm events to the alarm log."""

    def __init__(self, db: AsyncSession, registry: DeviceRegistryService | None = None):
        self.db = db
        self.registry = registry or DeviceRegistryService(db)

    async def process(self, event: AlarmEvent) -> ReconciliationOutcome:
        """Reconcile one event.

        Raises:
            StorageWriteFailure: If the log update could not be committed.
                Nothing from the event is persisted in that case.
        """
        if event.is_heartbeat:
            logger.debug(
                "Heartbeat alarm event ignored",
                device_mac=event.device_mac,
                transition=event.transition.name,
            )
            return ReconciliationOutcome(action=ReconciliationAction.IGNORED)

        serial = await self._resolve_serial(event.device_mac)

        if event.transition is AlarmTransition.RAISE:
            return await self._raise(event, serial)
        return await self._clear(event, serial)

    async def _raise(self, event: AlarmEvent, serial: str | None) -> ReconciliationOutcome:
        """Open a new active record, superseding the one still active."""
        record = AlarmRecord(
            started_at=event.occurred_at,
            stopped_at=None,
            device_mac=event.device_mac,
            device_ip=event.device_ip,
            code=event.code,
            active=True,
            serial=serial,
        )

        closed = await self._write(event, record)

        logger.info(
            "Alarm raised",
            device_mac=event.device_mac,
            device_ip=event.device_ip,
            code=event.code,
            superseded=closed,
        )
        return ReconciliationOutcome(
            action=ReconciliationAction.RAISED,
            closed_count=closed,
            record=record,
        )

    async def _clear(self, event: AlarmEvent, serial: str | None) -> ReconciliationOutcome:
        """Close active records and log the clearance itself.

        The clearance row is written even when nothing was active.
        """
        record = AlarmRecord(
            started_at=event.occurred_at,
            stopped_at=event.occurred_at,
            device_mac=event.device_mac,
            device_ip=event.device_ip,
            code=event.code,
            active=False,
            serial=serial,
        )

        closed = await self._write(event, record)

        logger.info(
            "Alarm cleared",
            device_mac=event.device_mac,
            device_ip=event.device_ip,
            code=event.code,
            closed=closed,
        )
        return ReconciliationOutcome(
            action=ReconciliationAction.CLEARED,
            closed_count=closed,
            record=record,
        )

    async def _write(self, event: AlarmEvent, record: AlarmRecord) -> int:
        """Close the device's open rows and insert record in one transaction."""
        try:
            await self._lock_device(event)
            result = await self.db.execute(
                update(AlarmRecord)
                .where(
                    and_(
                        AlarmRecord.device_mac == event.device_mac,
                        AlarmRecord.device_ip == event.device_ip,
                        AlarmRecord.active.is_(True),
                        AlarmRecord.is_open,
                    )
                )
                .values(active=False, stopped_at=event.occurred_at)
            )
            self.db.add(record)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageWriteFailure(
                f"Failed to write alarm event for {event.device_mac}: {e}"
            ) from e
        return result.rowcount

    async def _lock_device(self, event: AlarmEvent) -> None:
        """Serialize writers for one (mac, ip) until the transaction ends.

        Without it two RAISEs under READ COMMITTED can both find nothing to
        close and both insert an active row. SQLite already serializes
        writers, so the lock is PostgreSQL only.
        """
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(
            select(func.pg_advisory_xact_lock(func.hashtext(device_lock_key(event))))
        )

    async def _resolve_serial(self, mac: str) -> str | None:
        """Registry lookup; a failed read counts as no serial."""
        try:
            return await self.registry.lookup(mac)
        except StorageReadFailure as e:
            logger.warning("Serial lookup failed, storing without serial", device_mac=mac, error=str(e))
            await self.db.rollback()
            return None
