"""Unit tests for the bridge runtime lifecycle."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import pytest

from eip_bridge.adapters.northbound.mqtt import InboundMessage
from eip_bridge.config.schema import BridgeConfig
from eip_bridge.main import BridgeRuntime

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from eip_bridge.domain.model.tags import TagDirectory

    from .conftest import FakeSession


class FakeTransport:
    """Transport feeding queued inbound messages and recording publishes."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[InboundMessage | None] = asyncio.Queue()
        self.published: list[tuple[str, bytes]] = []
        self.subscriptions: list[str] = []
        self.connected = False
        self.fail_connect = False

    async def connect(self) -> None:
        if self.fail_connect:
            raise ConnectionError("Failed to connect to MQTT broker")
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def subscribe(self, topic_filter: str) -> None:
        self.subscriptions.append(topic_filter)

    async def publish(self, topic: str, payload: bytes) -> None:
        self.published.append((topic, payload))

    async def messages(self) -> AsyncIterator[InboundMessage]:
        while (message := await self.inbound.get()) is not None:
            yield message


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig.model_validate(
        {
            "device": {"host": "plc1"},
            "mqtt": {"topic_root": "plant/line3"},
            "workers": {"size": 2, "queue_size": 8},
        }
    )


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


def _runtime(config: BridgeConfig, session: Any, transport: FakeTransport) -> BridgeRuntime:
    return BridgeRuntime(config, session=session, transport=transport)  # type: ignore[arg-type]


class TestBridgeRuntime:
    """Tests for BridgeRuntime start, serve and stop."""

    async def test_serves_read_request(
        self,
        config: BridgeConfig,
        session: FakeSession,
        directory: TagDirectory,
        fake_transport: FakeTransport,
    ) -> None:
        session.directory = directory
        runtime = _runtime(config, session, fake_transport)

        await runtime.start()
        assert fake_transport.subscriptions == ["plant/line3/#"]
        assert runtime.context is not None
        assert len(runtime.context.directory) == len(directory)

        await fake_transport.inbound.put(
            InboundMessage("plant/line3/read", json.dumps({"tags": ["Temperature"]}).encode())
        )
        for _ in range(100):
            if fake_transport.published:
                break
            await asyncio.sleep(0.01)
        await runtime.stop()

        topic, payload = fake_transport.published[0]
        assert topic == "plant/line3/read/response"
        assert json.loads(payload)["data"]["Temperature"]["value"] == 72
        assert not fake_transport.connected

    async def test_stream_end_requests_shutdown(
        self,
        config: BridgeConfig,
        session: FakeSession,
        fake_transport: FakeTransport,
    ) -> None:
        runtime = _runtime(config, session, fake_transport)
        await runtime.start()

        await fake_transport.inbound.put(None)
        await asyncio.wait_for(runtime.run_until_shutdown(), timeout=2)
        await runtime.stop()

    async def test_broker_failure_is_fatal(
        self,
        config: BridgeConfig,
        session: FakeSession,
        fake_transport: FakeTransport,
    ) -> None:
        fake_transport.fail_connect = True
        runtime = _runtime(config, session, fake_transport)

        with pytest.raises(ConnectionError):
            await runtime.start()
        await runtime.stop()
