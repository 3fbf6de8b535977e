"""Unit tests for topic classification, request routing and dispatch."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import pytest

from eip_bridge.adapters.northbound.mqtt import InboundMessage
from eip_bridge.application.handlers import handle_request
from eip_bridge.application.router import (
    Job,
    RequestRouter,
    TopicCategory,
    classify_topic,
    relative_topic,
)
from eip_bridge.application.worker_pool import WorkerPool
from eip_bridge.domain.model.messages import StatusCode

if TYPE_CHECKING:
    from eip_bridge.application.context import BridgeContext

    from .conftest import RecordingTransport

ROOT = "plant/line3"


# =============================================================================
# CLASSIFICATION TESTS
# =============================================================================


class TestClassifyTopic:
    """Tests for substring topic classification."""

    @pytest.mark.parametrize(
        ("topic", "expected"),
        [
            ("plant/line3/read", TopicCategory.READ),
            ("plant/line3/write", TopicCategory.WRITE),
            ("plant/line3/method", TopicCategory.METHOD),
            ("plant/line3/subscribe", TopicCategory.SUBSCRIBE),
            ("plant/line3/read/response", TopicCategory.RESPONSE),
            ("plant/line3/write/response", TopicCategory.RESPONSE),
            ("plant/line3/batch-read", TopicCategory.READ),
        ],
    )
    def test_categories(self, topic: str, expected: TopicCategory) -> None:
        assert classify_topic(topic, ROOT) == expected

    def test_unknown_topic(self) -> None:
        assert classify_topic("plant/line3/status", ROOT) is None

    def test_root_is_excluded_from_matching(self) -> None:
        """A root containing a category word does not classify every topic."""
        assert classify_topic("readers/status", "readers") is None
        assert classify_topic("readers/write", "readers") == TopicCategory.WRITE

    def test_relative_topic(self) -> None:
        assert relative_topic("plant/line3/read", ROOT) == "read"
        assert relative_topic("other/read", ROOT) == "other/read"


# =============================================================================
# ROUTER TESTS
# =============================================================================


class RecordingPool:
    def __init__(self) -> None:
        self.jobs: list[Job] = []

    async def submit(self, job: Job) -> None:
        self.jobs.append(job)


class TestRequestRouter:
    """Tests for RequestRouter."""

    @pytest.fixture
    def pool(self) -> RecordingPool:
        return RecordingPool()

    @pytest.fixture
    def router(self, pool: RecordingPool) -> RequestRouter:
        return RequestRouter(ROOT, pool)  # type: ignore[arg-type]

    def test_subscription_covers_root(self, router: RequestRouter) -> None:
        assert router.subscription == "plant/line3/#"

    async def test_read_is_enqueued(self, router: RequestRouter, pool: RecordingPool) -> None:
        category = await router.route(InboundMessage("plant/line3/read", b'{"tags": []}'))

        assert category == TopicCategory.READ
        assert len(pool.jobs) == 1
        assert pool.jobs[0].category == TopicCategory.READ
        assert pool.jobs[0].payload == b'{"tags": []}'

    async def test_response_echo_is_dropped(
        self, router: RequestRouter, pool: RecordingPool
    ) -> None:
        category = await router.route(InboundMessage("plant/line3/read/response", b"{}"))

        assert category == TopicCategory.RESPONSE
        assert pool.jobs == []

    async def test_unknown_is_dropped(self, router: RequestRouter, pool: RecordingPool) -> None:
        assert await router.route(InboundMessage("plant/line3/heartbeat", b"")) is None
        assert pool.jobs == []


# =============================================================================
# DISPATCH TESTS
# =============================================================================


class TestDispatch:
    """Tests for routed jobs reaching handlers and publishing responses."""

    async def test_end_to_end_read(
        self, ctx: BridgeContext, transport: RecordingTransport
    ) -> None:
        async def handler(job: Job) -> None:
            await handle_request(ctx, job)

        pool = WorkerPool(handler, size=2, queue_size=4)
        router = RequestRouter(ROOT, pool)
        await pool.start()
        try:
            await router.route(
                InboundMessage("plant/line3/read", json.dumps({"tags": ["Temperature"]}).encode())
            )
            await asyncio.wait_for(pool.join(), timeout=2)
        finally:
            await pool.stop()

        topic, body = transport.last()
        assert topic == "plant/line3/read/response"
        assert body["data"]["Temperature"]["value"] == 72

    async def test_method_is_not_supported(
        self, ctx: BridgeContext, transport: RecordingTransport
    ) -> None:
        payload = json.dumps({"object_id": "ns=1;s=Pump", "method_id": "Start", "arguments": [1]})

        await handle_request(ctx, Job(TopicCategory.METHOD, "plant/line3/method", payload.encode()))

        topic, body = transport.last()
        assert topic == "plant/line3/method/response"
        assert body["success"] is False
        assert body["status_code"] == StatusCode.BAD_NOT_SUPPORTED
        assert body["object_id"] == "ns=1;s=Pump"
        assert body["arguments"] == [1]
        assert body["error_message"]

    async def test_subscribe_is_not_supported(
        self, ctx: BridgeContext, transport: RecordingTransport
    ) -> None:
        payload = json.dumps(
            {
                "request_type": "create",
                "request_params": {
                    "publish_interval": 1000,
                    "items_to_monitor": [{"node_id": "Temperature", "values": True}],
                },
            }
        )

        await handle_request(
            ctx, Job(TopicCategory.SUBSCRIBE, "plant/line3/subscribe", payload.encode())
        )

        topic, body = transport.last()
        assert topic == "plant/line3/subscribe/response"
        assert body["success"] is False
        assert body["request_type"] == "create"
        assert body["status_code"] == StatusCode.BAD_NOT_SUPPORTED

    async def test_subscribe_with_bad_params(
        self, ctx: BridgeContext, transport: RecordingTransport
    ) -> None:
        payload = json.dumps({"request_type": "delete", "request_params": {}})

        await handle_request(
            ctx, Job(TopicCategory.SUBSCRIBE, "plant/line3/subscribe", payload.encode())
        )

        _, body = transport.last()
        assert body["success"] is False
        assert body["status_code"] == StatusCode.BAD_DECODING_ERROR
        assert "invalid delete parameters" in body["error_message"]

    async def test_malformed_method(
        self, ctx: BridgeContext, transport: RecordingTransport
    ) -> None:
        await handle_request(ctx, Job(TopicCategory.METHOD, "plant/line3/method", b"[]"))

        _, body = transport.last()
        assert body["success"] is False
        assert body["error_message"].startswith("invalid method request")
