"""Device registry service mapping MAC addresses to operator serials."""

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.integrations.alarms.protocols import normalize_mac
from app.models.alarm_record import AlarmRecord
from app.models.device_registration import DeviceRegistration

logger = structlog.get_logger()


class RegistryError(Exception):
    """Invalid registration request."""
    pass


class StorageReadFailure(Exception):
    """The registry could not be read."""
    pass


class DeviceRegistryService:
    """Register serials for devices and resolve them by MAC address."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup(self, mac: str) -> str | None:
        """Return the serial registered for a MAC, or None.

        Raises:
            StorageReadFailure: If the registry query fails.
        """
        try:
            result = await self.db.execute(
                select(DeviceRegistration.serial).where(
                    DeviceRegistration.device_mac == normalize_mac(mac)
                )
            )
        except SQLAlchemyError as e:
            raise StorageReadFailure(f"Serial lookup failed for {mac}: {e}") from e
        return result.scalar_one_or_none()

    async def get_registration(self, mac: str) -> DeviceRegistration | None:
        return await self.db.get(DeviceRegistration, normalize_mac(mac))

    async def list_registrations(self, limit: int = 100, offset: int = 0) -> list[DeviceRegistration]:
        result = await self.db.execute(
            select(DeviceRegistration)
            .order_by(DeviceRegistration.device_mac)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def register(self, mac: str, serial: str) -> int:
        """Upsert the serial for a MAC and copy it onto that device's alarm records.

        The backfill is best-effort: if it fails the registration still
        stands and 0 is reported.

        Returns:
            Number of alarm records matched by the backfill.

        Raises:
            RegistryError: If mac or serial is empty.
        """
        if not mac or not mac.strip():
            raise RegistryError("mac is required")
        if not serial or not serial.strip():
            raise RegistryError("serial is required")

        mac = normalize_mac(mac)
        serial = serial.strip()

        try:
            await self._upsert(mac, serial)
        except IntegrityError:
            # Concurrent first registration of the same MAC won the insert
            await self.db.rollback()
            await self._upsert(mac, serial)

        logger.info("Device serial registered", device_mac=mac, serial=serial)

        return await self._backfill_serial(mac, serial)

    async def _upsert(self, mac: str, serial: str) -> DeviceRegistration:
        registration = await self.db.get(DeviceRegistration, mac)
        if registration is None:
            registration = DeviceRegistration(device_mac=mac, serial=serial)
            self.db.add(registration)
        else:
            registration.serial = serial
        await self.db.commit()
        return registration

    async def _backfill_serial(self, mac: str, serial: str) -> int:
        """Copy the serial onto every alarm record for the MAC."""
        try:
            result = await self.db.execute(
                update(AlarmRecord)
                .where(AlarmRecord.device_mac == mac)
                .values(serial=serial)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("Serial backfill failed", device_mac=mac, error=str(e))
            return 0

        logger.debug("Serial backfilled", device_mac=mac, updated=result.rowcount)
        return result.rowcount
