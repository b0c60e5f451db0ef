"""MQTT handler for device alarm messages.

Receives plain-text alarm messages from the alarm topic and passes them to
the ingestion service, which decodes them and updates the alarm log.
"""

import structlog

from app.services.alarm_ingestion_service import get_ingestion_service

logger = structlog.get_logger()


async def handle_alarm_message(topic: str, payload: bytes | str) -> None:
    """Handle one alarm message from MQTT.

    Payload format: DATE TIME MAC IP FLAG CODE COUNTER

    Args:
        topic: MQTT topic string.
        payload: Raw message body.
    """
    try:
        await get_ingestion_service().handle_message(payload, source=topic)
    except Exception as e:
        logger.error(
            "Alarm handler error",
            topic=topic,
            error=str(e),
            exc_info=True,
        )
