"""Readiness of the alarm ledger: the alarm log and the alarm channel."""

import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import AlarmRecord

if TYPE_CHECKING:
    from app.services.mqtt_service import AlarmMQTTService

logger = structlog.get_logger()


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus
    message: str | None = None
    latency_ms: float | None = None


@dataclass
class SystemHealth:
    status: HealthStatus
    version: str
    components: list[ComponentHealth]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "components": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "latency_ms": c.latency_ms,
                }
                for c in self.components
            ],
        }


class HealthService:
    """Checks the two things ingestion and queries depend on."""

    VERSION = "0.1.0"

    async def check_alarm_log(self, session: AsyncSession) -> ComponentHealth:
        """Read the active alarm count; unreadable log means not ready."""
        start = time.perf_counter()
        try:
            active = (
                await session.execute(
                    select(func.count()).select_from(AlarmRecord).where(AlarmRecord.active.is_(True))
                )
            ).scalar_one()
        except Exception as e:
            logger.error("Alarm log health check failed", error=str(e))
            return ComponentHealth(
                name="alarm_log",
                status=HealthStatus.UNHEALTHY,
                message=f"Alarm log unreadable: {str(e)[:100]}",
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
            )

        return ComponentHealth(
            name="alarm_log",
            status=HealthStatus.HEALTHY,
            message=f"{active} active alarms",
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    def check_alarm_channel(self, mqtt_service: "AlarmMQTTService | None") -> ComponentHealth:
        """Report the alarm channel subscription state.

        A disabled channel is healthy; a reconnecting one is degraded since
        queries keep working while ingestion is paused.
        """
        if mqtt_service is None:
            return ComponentHealth(
                name="alarm_channel",
                status=HealthStatus.HEALTHY,
                message="MQTT ingestion disabled",
            )

        if mqtt_service.is_connected:
            return ComponentHealth(
                name="alarm_channel",
                status=HealthStatus.HEALTHY,
                message=f"Subscribed to {mqtt_service.alarm_topic}",
            )

        return ComponentHealth(
            name="alarm_channel",
            status=HealthStatus.DEGRADED,
            message=f"Channel {mqtt_service.state.value}",
        )

    async def get_readiness(
        self,
        session: AsyncSession,
        mqtt_service: "AlarmMQTTService | None" = None,
    ) -> SystemHealth:
        components = [
            await self.check_alarm_log(session),
            self.check_alarm_channel(mqtt_service),
        ]

        statuses = {c.status for c in components}
        if HealthStatus.UNHEALTHY in statuses:
            overall = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return SystemHealth(status=overall, version=self.VERSION, components=components)

    def get_liveness(self) -> SystemHealth:
        return SystemHealth(
            status=HealthStatus.HEALTHY,
            version=self.VERSION,
            components=[ComponentHealth(name="alarm_ledger", status=HealthStatus.HEALTHY)],
        )


health_service = HealthService()
