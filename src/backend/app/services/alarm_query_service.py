"""Alarm log query service.

Read-only access to the alarm log, newest first. Rows older than the
retention window are filtered out here as well, since the storage engine
drops expired chunks on its own schedule.
"""

from datetime import datetime

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.retention import ALARM_RETENTION, RetentionPolicy
from app.models.alarm_record import AlarmRecord
from app.services.device_registry_service import DeviceRegistryService


class InvalidQuery(Exception):
    """A filtered query was requested without any filter."""
    pass


class AlarmQueryService:
    """Query alarm records by device and state."""

    def __init__(self, db: AsyncSession, retention: RetentionPolicy = ALARM_RETENTION):
        self.db = db
        self.retention = retention

    async def list_all(
        self,
        limit: int | None = None,
        offset: int = 0,
        now: datetime | None = None,
    ) -> list[AlarmRecord]:
        """Full alarm history inside the retention window."""
        return await self._fetch(self._base_query(now), limit, offset)

    async def list_filtered(
        self,
        mac: str | None = None,
        ip: str | None = None,
        active: bool | None = None,
        limit: int | None = None,
        offset: int = 0,
        now: datetime | None = None,
    ) -> list[AlarmRecord]:
        """Alarm history matching any combination of filters.

        mac matches case-insensitively anywhere in the address, ip and
        active match exactly. Blank strings count as absent.

        Raises:
            InvalidQuery: If no filter is given.
        """
        mac = mac.strip() if mac and mac.strip() else None
        ip = ip.strip() if ip and ip.strip() else None

        if mac is None and ip is None and active is None:
            raise InvalidQuery("At least one of mac, ip or active is required")

        query = self._base_query(now)
        if mac is not None:
            query = query.where(AlarmRecord.device_mac.icontains(mac, autoescape=True))
        if ip is not None:
            query = query.where(AlarmRecord.device_ip == ip)
        if active is not None:
            query = query.where(AlarmRecord.active.is_(active))

        return await self._fetch(query, limit, offset)

    async def get_serial(self, mac: str) -> str | None:
        return await DeviceRegistryService(self.db).lookup(mac)

    def _base_query(self, now: datetime | None) -> Select:
        return select(AlarmRecord).where(
            AlarmRecord.started_at >= self.retention.cutoff(now)
        )

    async def _fetch(self, query: Select, limit: int | None, offset: int) -> list[AlarmRecord]:
        query = query.order_by(
            AlarmRecord.started_at.desc(),
            AlarmRecord.created_at.desc(),
        ).offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())
