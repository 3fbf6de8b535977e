"""Request router.

Classifies inbound MQTT topics and hands request jobs to the worker pool.
Topic matching is substring based on the part of the topic below the
configured root, checked in priority order: response echoes first, then
read, write, method and subscribe.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from eip_bridge.adapters.northbound.mqtt.client import InboundMessage
    from eip_bridge.application.worker_pool import WorkerPool

logger = structlog.get_logger(__name__)


class TopicCategory(str, Enum):
    """Topic segments reserved by the bridge, in match priority order."""

    RESPONSE = "response"
    READ = "read"
    WRITE = "write"
    METHOD = "method"
    SUBSCRIBE = "subscribe"


@dataclass(frozen=True, slots=True)
class Job:
    """One inbound request waiting for a worker."""

    category: TopicCategory
    topic: str
    payload: bytes
    received_at: float = field(default_factory=time.monotonic)


def relative_topic(topic: str, topic_root: str) -> str:
    """Strip the topic root prefix, if present."""
    prefix = f"{topic_root}/" if topic_root else ""
    if prefix and topic.startswith(prefix):
        return topic[len(prefix) :]
    return topic


def classify_topic(topic: str, topic_root: str = "") -> TopicCategory | None:
    """Classify a topic, or return None for unknown topics."""
    subject = relative_topic(topic, topic_root)
    for category in TopicCategory:
        if category.value in subject:
            return category
    return None


class RequestRouter:
    """Routes inbound messages onto the worker pool without awaiting handlers."""

    def __init__(self, topic_root: str, pool: WorkerPool) -> None:
        self._topic_root = topic_root
        self._pool = pool

    @property
    def subscription(self) -> str:
        """Topic filter covering every request topic."""
        return f"{self._topic_root}/#"

    async def route(self, message: InboundMessage) -> TopicCategory | None:
        """Classify ``message`` and enqueue it.

        Only waits when the worker pool queue is full.

        Returns:
            The category the message was classified as
        """
        category = classify_topic(message.topic, self._topic_root)

        if category is None:
            logger.error(
                "Unknown request received",
                topic=message.topic,
                payload=message.payload,
            )
            return None

        if category == TopicCategory.RESPONSE:
            logger.debug("Received response, ignoring", topic=message.topic)
            return category

        logger.info("Received request", category=category.value, topic=message.topic)
        logger.debug("Request body", payload=message.payload)
        await self._pool.submit(Job(category=category, topic=message.topic, payload=message.payload))
        return category
