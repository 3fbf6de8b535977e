from __future__ import annotations

import json
from typing import Any

import pytest

from eip_bridge.adapters.southbound.base import SessionHealth, SessionState, WriteOutcome
from eip_bridge.application.context import BridgeContext
from eip_bridge.application.publisher import ResponsePublisher
from eip_bridge.domain.errors import DeviceError
from eip_bridge.domain.model.tags import Tag, TagDirectory, WireType

TOPIC_ROOT = "plant/line3"


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        item.add_marker(pytest.mark.unit)


class FakeSession:
    """In-memory device session recording every read and write."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self.values: dict[str, Any] = dict(values or {})
        self.reads: list[str] = []
        self.writes: list[tuple[str, Any]] = []
        self.read_failures: dict[str, Exception] = {}
        self.write_outcome = WriteOutcome()
        self.directory = TagDirectory()
        self._health = SessionHealth()

    async def connect(self) -> None:
        self._health.state = SessionState.OPEN

    async def disconnect(self) -> None:
        self._health.state = SessionState.CLOSED

    async def enumerate_tags(self) -> TagDirectory:
        return self.directory

    async def read(self, tag: Tag) -> Any:
        self.reads.append(tag.name)
        if tag.name in self.read_failures:
            raise self.read_failures[tag.name]
        return self.values.get(tag.name)

    async def write(self, tag: Tag, value: Any) -> WriteOutcome:
        self.writes.append((tag.name, value))
        if self.write_outcome.ok:
            self.values[tag.name] = value
        return self.write_outcome

    def health_status(self) -> SessionHealth:
        return self._health


class RecordingTransport:
    """Transport stand-in capturing published messages."""

    def __init__(self) -> None:
        self.published: list[tuple[str, bytes]] = []
        self.fail_with: Exception | None = None

    async def publish(self, topic: str, payload: bytes) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.published.append((topic, payload))

    def last(self) -> tuple[str, dict[str, Any]]:
        topic, payload = self.published[-1]
        return topic, json.loads(payload)


@pytest.fixture
def directory() -> TagDirectory:
    return TagDirectory(
        [
            Tag("Temperature", WireType.DINT, "DINT", instance_id=1),
            Tag("Pressure", WireType.INT, "INT", instance_id=2),
            Tag("Running", WireType.BOOL, "BOOL", instance_id=3),
            Tag("Recipe", WireType.STRING, "STRING", instance_id=4),
            Tag("Setpoint", WireType.REAL, "REAL", instance_id=5),
            Tag("Counts", WireType.DINT, "DINT", instance_id=6, dimensions=(4, 0, 0)),
            Tag("Program:Main.Step", WireType.SINT, "SINT", instance_id=7),
            Tag("Totalizer", WireType.LINT, "LINT", instance_id=8),
        ]
    )


@pytest.fixture
def session() -> FakeSession:
    return FakeSession(
        {
            "Temperature": 72,
            "Pressure": -12,
            "Running": True,
            "Recipe": "IPA-40",
            "Setpoint": 21.5,
            "Program:Main.Step": 3,
            "Totalizer": 10_000_000_000,
        }
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def ctx(session: FakeSession, directory: TagDirectory, transport: RecordingTransport) -> BridgeContext:
    return BridgeContext(
        session=session,
        directory=directory,
        publisher=ResponsePublisher(transport, TOPIC_ROOT),
    )


@pytest.fixture
def device_error() -> DeviceError:
    return DeviceError("read of tag Temperature timed out after 5.0s")
