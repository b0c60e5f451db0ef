"""MQTT alarm channel service.

Keeps a supervised subscription to the broker's alarm topic and hands each
raw message to the registered handler. The connection moves through
DISCONNECTED -> CONNECTING -> SUBSCRIBED and falls back to DISCONNECTED on
any error, retrying with bounded exponential backoff until stopped.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable

import aiomqtt
import structlog

from app.core.metrics import set_mqtt_connected
from app.services.mqtt_handlers.alarm_handler import handle_alarm_message

logger = structlog.get_logger()

# Type for async raw-payload message handlers
MessageHandler = Callable[[str, bytes], Awaitable[None]]


class ChannelState(str, Enum):
    """Connection state of the alarm channel."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"


class AlarmMQTTService:
    """Async MQTT client for the device alarm channel."""

    def __init__(
        self,
        broker_host: str,
        broker_port: int = 1883,
        alarm_topic: str = "alarm",
        username: str = "",
        password: str = "",
        client_id: str = "alarm-ledger",
        reconnect_interval: int = 5,
        max_reconnect_interval: int = 60,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.alarm_topic = alarm_topic
        self.username = username
        self.password = password
        self.client_id = client_id
        self.reconnect_interval = reconnect_interval
        self.max_reconnect_interval = max_reconnect_interval

        self._client: aiomqtt.Client | None = None
        self._listener_task: asyncio.Task | None = None
        self._message_handlers: dict[str, MessageHandler] = {}
        self._state: ChannelState = ChannelState.DISCONNECTED

        # Register default handlers
        self.register_handler(alarm_topic, handle_alarm_message)

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ChannelState.SUBSCRIBED

    def register_handler(self, topic_pattern: str, handler: MessageHandler) -> None:
        self._message_handlers[topic_pattern] = handler
        logger.info("Registered MQTT handler", topic_pattern=topic_pattern)

    async def start(self) -> None:
        logger.info("Starting alarm MQTT service", broker=self.broker_host, port=self.broker_port)
        self._listener_task = asyncio.create_task(self._listen_loop(), name="alarm-mqtt-listener")

    async def stop(self) -> None:
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
        self._set_state(ChannelState.DISCONNECTED)
        logger.info("Alarm MQTT service stopped")

    def _set_state(self, state: ChannelState) -> None:
        if state is not self._state:
            logger.debug("Alarm channel state changed", old=self._state.value, new=state.value)
        self._state = state
        set_mqtt_connected(state is ChannelState.SUBSCRIBED)

    def _next_interval(self, interval: int) -> int:
        return min(interval * 2, self.max_reconnect_interval)

    async def _listen_loop(self) -> None:
        """Main connection loop with exponential backoff reconnection."""
        interval = self.reconnect_interval
        while True:
            self._set_state(ChannelState.CONNECTING)
            try:
                async with aiomqtt.Client(
                    hostname=self.broker_host,
                    port=self.broker_port,
                    username=self.username or None,
                    password=self.password or None,
                    identifier=self.client_id,
                ) as client:
                    self._client = client
                    logger.info("Connected to MQTT broker", broker=self.broker_host, port=self.broker_port)

                    for topic in self._message_handlers:
                        await client.subscribe(topic, qos=1)
                        logger.info("Subscribed to MQTT topic", topic=topic)

                    self._set_state(ChannelState.SUBSCRIBED)
                    interval = self.reconnect_interval  # Reset on success

                    async for message in client.messages:
                        await self._dispatch_message(str(message.topic), message.payload)

            except aiomqtt.MqttError as e:
                self._client = None
                self._set_state(ChannelState.DISCONNECTED)
                logger.warning("MQTT connection lost, reconnecting", error=str(e), retry_in=interval)
                await asyncio.sleep(interval)
                interval = self._next_interval(interval)
            except asyncio.CancelledError:
                self._client = None
                self._set_state(ChannelState.DISCONNECTED)
                logger.info("MQTT listener task cancelled")
                raise
            except Exception as e:
                self._client = None
                self._set_state(ChannelState.DISCONNECTED)
                logger.error("Unexpected MQTT error, reconnecting", error=str(e), retry_in=interval)
                await asyncio.sleep(interval)
                interval = self._next_interval(interval)

    async def _dispatch_message(self, topic: str, payload: bytes | bytearray | str | None) -> None:
        if payload is None:
            payload = b""
        elif isinstance(payload, bytearray):
            payload = bytes(payload)
        elif not isinstance(payload, (bytes, str)):
            logger.warning("Unsupported MQTT payload type", topic=topic, payload_type=type(payload).__name__)
            return

        logger.debug("Received MQTT message", topic=topic)
        for pattern, handler in self._message_handlers.items():
            if self._topic_matches(topic, pattern):
                try:
                    await handler(topic, payload)
                except Exception as e:
                    logger.error("MQTT handler error", topic=topic, pattern=pattern, error=str(e))
                return

        logger.debug("No handler for MQTT topic", topic=topic)

    @staticmethod
    def _topic_matches(topic: str, pattern: str) -> bool:
        topic_parts = topic.split("/")
        pattern_parts = pattern.split("/")
        for i, pat in enumerate(pattern_parts):
            if pat == "#":
                return True
            if i >= len(topic_parts):
                return False
            if pat != "+" and pat != topic_parts[i]:
                return False
        return len(topic_parts) == len(pattern_parts)
