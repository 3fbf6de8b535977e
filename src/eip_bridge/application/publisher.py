"""Response publisher.

Serializes response documents and publishes them on
``<topic_root>/<category>/response``. Failures are logged and not
retried; callers never see them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import structlog

if TYPE_CHECKING:
    from pydantic import BaseModel

logger = structlog.get_logger(__name__)

RESPONSE_SUFFIX = "response"


class MessagePublisher(Protocol):
    """Outbound side of the messaging transport."""

    async def publish(self, topic: str, payload: bytes) -> None: ...


class ResponsePublisher:
    """Fire-and-forget publisher of response documents."""

    def __init__(self, transport: MessagePublisher, topic_root: str) -> None:
        self._transport = transport
        self._topic_root = topic_root.rstrip("/")

    def response_topic(self, category: str) -> str:
        """Derive the response topic for a request category."""
        return f"{self._topic_root}/{category}/{RESPONSE_SUFFIX}"

    async def publish(self, category: str, response: BaseModel) -> bool:
        """Serialize and publish ``response``.

        Returns:
            True if the message was handed to the transport
        """
        topic = self.response_topic(category)
        try:
            payload = response.model_dump_json().encode("utf-8")
        except Exception as e:
            logger.error("Failed to serialize response", topic=topic, error=str(e))
            return False

        logger.debug("Publishing response", topic=topic, size=len(payload))
        try:
            await self._transport.publish(topic, payload)
        except Exception as e:
            logger.error("Failed to publish response", topic=topic, error=str(e))
            return False
        return True
