"""Retention policy declarations.

Expiry itself is performed by the storage engine (TimescaleDB
``add_retention_policy``). Migration 001 registers that policy from
ALARM_RETENTION, so the stored policy and the query-time cutoff both come
from ALARM_RETENTION_DAYS. The application hides rows past the window from
queries until the background job has dropped them. Changing the setting
after migrating needs the storage policy registered again (downgrade and
upgrade 001).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.core.config import settings


@dataclass(frozen=True)
class RetentionPolicy:
    """Time-bounded expiry keyed on a timestamp column."""

    table: str
    column: str
    window: timedelta

    def cutoff(self, now: datetime | None = None) -> datetime:
        """Oldest timestamp still inside the window."""
        now = now or datetime.now(timezone.utc)
        return now - self.window

    def is_expired(self, value: datetime, now: datetime | None = None) -> bool:
        return value < self.cutoff(now)

    @property
    def interval_sql(self) -> str:
        """Window as a PostgreSQL interval literal, for the storage policy."""
        return f"INTERVAL '{self.window.days} days'"


ALARM_RETENTION = RetentionPolicy(
    table="alarm_records",
    column="started_at",
    window=timedelta(days=settings.alarm_retention_days),
)
