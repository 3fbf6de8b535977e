"""Unit tests for the aiomqtt-backed MQTT transport."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiomqtt
import pytest

from eip_bridge.adapters.northbound.mqtt import InboundMessage, MQTTTransport
from eip_bridge.config.schema import MQTTConfig

CLIENT = "aiomqtt.Client"


class _Messages:
    def __init__(self, items: list[Any]) -> None:
        self._items = list(items)

    def __aiter__(self) -> _Messages:
        return self

    async def __anext__(self) -> Any:
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


def _mock_client(messages: list[Any] | None = None) -> MagicMock:
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    client.subscribe = AsyncMock()
    client.publish = AsyncMock()
    client.messages = _Messages(messages or [])
    return client


@pytest.fixture
def config() -> MQTTConfig:
    return MQTTConfig(host="broker.local", port=1884, client_id="bridge-1", qos=1, topic_root="eip")


class TestMQTTTransport:
    """Tests for MQTTTransport."""

    async def test_connect_creates_client(self, config: MQTTConfig) -> None:
        client = _mock_client()
        with patch(CLIENT, return_value=client) as client_cls:
            transport = MQTTTransport(config)
            await transport.connect()

            assert transport.is_connected
            client_cls.assert_called_once_with(
                hostname="broker.local",
                port=1884,
                username=None,
                password=None,
                identifier="bridge-1",
                keepalive=60,
            )
            client.__aenter__.assert_awaited_once()

            await transport.disconnect()
            client.__aexit__.assert_awaited_once()
            assert not transport.is_connected

    async def test_connect_failure(self, config: MQTTConfig) -> None:
        client = _mock_client()
        client.__aenter__.side_effect = aiomqtt.MqttError("Connection refused")
        with patch(CLIENT, return_value=client):
            transport = MQTTTransport(config)
            with pytest.raises(ConnectionError, match="broker.local:1884"):
                await transport.connect()
            assert not transport.is_connected

    async def test_subscribe_and_publish_use_qos(self, config: MQTTConfig) -> None:
        client = _mock_client()
        with patch(CLIENT, return_value=client):
            transport = MQTTTransport(config)
            await transport.connect()
            await transport.subscribe("eip/#")
            await transport.publish("eip/read/response", b"{}")

        client.subscribe.assert_awaited_once_with("eip/#", qos=1)
        client.publish.assert_awaited_once_with("eip/read/response", payload=b"{}", qos=1)

    async def test_messages_are_wrapped(self, config: MQTTConfig) -> None:
        raw = [
            SimpleNamespace(topic=SimpleNamespace(value="eip/read"), payload=b'{"tags": []}'),
            SimpleNamespace(topic=SimpleNamespace(value="eip/write"), payload=bytearray(b"{}")),
            SimpleNamespace(topic=SimpleNamespace(value="eip/other"), payload=None),
        ]
        with patch(CLIENT, return_value=_mock_client(raw)):
            transport = MQTTTransport(config)
            await transport.connect()
            received = [message async for message in transport.messages()]

        assert received == [
            InboundMessage("eip/read", b'{"tags": []}'),
            InboundMessage("eip/write", b"{}"),
            InboundMessage("eip/other", b""),
        ]

    async def test_publish_when_disconnected(self, config: MQTTConfig) -> None:
        transport = MQTTTransport(config)
        with pytest.raises(ConnectionError, match="not connected"):
            await transport.publish("eip/read/response", b"{}")
