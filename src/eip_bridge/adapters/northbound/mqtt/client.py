"""MQTT transport built on aiomqtt.

Wraps a single broker connection and exposes the three primitives the
bridge consumes: subscribe, publish, and iteration over inbound messages.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import aiomqtt
import structlog

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from eip_bridge.config.schema import MQTTConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class InboundMessage:
    """Topic and raw payload of a received MQTT message."""

    topic: str
    payload: bytes


def _payload_bytes(payload: Any) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, bytes | bytearray):
        return bytes(payload)
    return str(payload).encode("utf-8")


class MQTTTransport:
    """Single MQTT broker connection."""

    def __init__(self, config: MQTTConfig) -> None:
        self._config = config
        self._client: aiomqtt.Client | None = None
        self._stack: contextlib.AsyncExitStack | None = None

    @property
    def broker(self) -> str:
        return f"{self._config.host}:{self._config.port}"

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Connect to the broker.

        Raises:
            ConnectionError: If the broker cannot be reached
        """
        if self._client is not None:
            return

        client = aiomqtt.Client(
            hostname=self._config.host,
            port=self._config.port,
            username=self._config.username,
            password=self._config.password,
            identifier=self._config.client_id,
            keepalive=self._config.keepalive_s,
        )
        stack = contextlib.AsyncExitStack()
        logger.info("Connecting to MQTT broker", broker=self.broker)
        try:
            await stack.enter_async_context(client)
        except aiomqtt.MqttError as e:
            logger.error("Failed to connect MQTT", broker=self.broker, error=str(e))
            raise ConnectionError(f"Failed to connect to MQTT broker {self.broker}: {e}") from e

        self._client = client
        self._stack = stack
        logger.info("Connected to MQTT broker", broker=self.broker)

    async def disconnect(self) -> None:
        """Disconnect from the broker."""
        stack, self._stack, self._client = self._stack, None, None
        if stack is None:
            return
        logger.info("Disconnecting from MQTT broker", broker=self.broker)
        try:
            await stack.aclose()
        except aiomqtt.MqttError as e:
            logger.warning("Error during MQTT disconnect", error=str(e))

    async def subscribe(self, topic_filter: str) -> None:
        """Subscribe to a topic filter at the configured QoS."""
        client = self._require_client()
        await client.subscribe(topic_filter, qos=self._config.qos)
        logger.info("Subscribed", topic=topic_filter, qos=self._config.qos)

    async def publish(self, topic: str, payload: bytes) -> None:
        """Publish a payload at the configured QoS.

        Raises:
            aiomqtt.MqttError: If the publish fails
        """
        client = self._require_client()
        await client.publish(topic, payload=payload, qos=self._config.qos)

    async def messages(self) -> AsyncIterator[InboundMessage]:
        """Iterate over inbound messages until the connection closes."""
        client = self._require_client()
        async for message in client.messages:
            yield InboundMessage(
                topic=message.topic.value,
                payload=_payload_bytes(message.payload),
            )

    def _require_client(self) -> aiomqtt.Client:
        if self._client is None:
            raise ConnectionError("MQTT transport is not connected")
        return self._client
