"""Alarm ingestion service.

Single entry point for raw alarm messages. The MQTT channel calls
handle_message, which opens its own session and swallows failures so one
bad message cannot stop the stream. The HTTP bridge calls ingest with the
request session and maps the raised errors to status codes.
"""

from functools import lru_cache

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core import metrics
from app.core.deps import async_session_factory, get_event_decoder
from app.integrations.alarms.event_parser import AlarmMessageDecoder
from app.integrations.alarms.protocols import MalformedEvent
from app.services.alarm_reconciliation_service import (
    AlarmReconciliationService,
    ReconciliationOutcome,
    StorageWriteFailure,
)

logger = structlog.get_logger()


class AlarmIngestionService:
    """Decode and reconcile alarm messages one at a time."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        decoder: AlarmMessageDecoder | None = None,
    ):
        self.session_factory = session_factory
        self.decoder = decoder or get_event_decoder()

        # Statistics
        self._stats = {
            "messages_received": 0,
            "events_processed": 0,
            "events_ignored": 0,
            "malformed": 0,
            "storage_failures": 0,
        }

    @property
    def stats(self) -> dict[str, int]:
        return self._stats.copy()

    async def handle_message(self, payload: bytes | str, source: str = "mqtt") -> ReconciliationOutcome | None:
        """Decode and reconcile one raw message in its own session.

        Returns:
            The reconciliation outcome, or None if the message was dropped.
        """
        async with self.session_factory() as db:
            try:
                return await self.ingest(payload, db, source=source)
            except (MalformedEvent, StorageWriteFailure):
                return None

    async def ingest(self, payload: bytes | str, db: AsyncSession, source: str = "http") -> ReconciliationOutcome:
        """Decode and reconcile one raw message using the caller's session.

        Stats, metrics and logging are recorded here for every source.

        Raises:
            MalformedEvent: If the message cannot be decoded.
            StorageWriteFailure: If the alarm log could not be updated.
        """
        self._stats["messages_received"] += 1
        metrics.record_event_received()

        try:
            event = self.decoder.decode(payload)
        except MalformedEvent as e:
            self._stats["malformed"] += 1
            metrics.record_event_rejected()
            logger.warning("Malformed alarm message dropped", source=source, raw=_preview(payload), error=str(e))
            raise

        service = AlarmReconciliationService(db)
        try:
            outcome = await service.process(event)
        except StorageWriteFailure as e:
            self._stats["storage_failures"] += 1
            metrics.record_storage_failure("write")
            logger.error(
                "Alarm event dropped after storage failure",
                source=source,
                device_mac=event.device_mac,
                code=event.code,
                counter=event.counter,
                error=str(e),
            )
            raise

        if outcome.record is None:
            self._stats["events_ignored"] += 1
        else:
            self._stats["events_processed"] += 1
        metrics.record_event_processed(outcome.action.value)
        return outcome


def _preview(payload: bytes | str, limit: int = 200) -> str:
    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
    return text[:limit]


@lru_cache
def get_ingestion_service() -> AlarmIngestionService:
    """Process-wide ingestion service bound to the application session factory."""
    return AlarmIngestionService(async_session_factory)
