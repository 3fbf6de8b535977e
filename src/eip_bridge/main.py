"""Main entry point for the EIP bridge runtime."""

from __future__ import annotations

import asyncio
import signal
from functools import partial
from typing import TYPE_CHECKING

import structlog

from eip_bridge.adapters.northbound.mqtt import MQTTTransport
from eip_bridge.adapters.southbound.eip import EIPSession
from eip_bridge.application.context import BridgeContext
from eip_bridge.application.handlers import handle_request
from eip_bridge.application.publisher import ResponsePublisher
from eip_bridge.application.router import RequestRouter
from eip_bridge.application.worker_pool import WorkerPool
from eip_bridge.config.loader import load_config
from eip_bridge.observability.logging import setup_logging

if TYPE_CHECKING:
    from pathlib import Path

    from eip_bridge.adapters.southbound.base import SessionPort
    from eip_bridge.config.schema import BridgeConfig

logger = structlog.get_logger(__name__)


class BridgeRuntime:
    """Main runtime orchestrator for the EIP bridge.

    Startup order is device session, tag directory, broker connection, worker
    pool, then the request subscription. Shutdown runs the other way round.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        session: SessionPort | None = None,
        transport: MQTTTransport | None = None,
    ) -> None:
        self.config = config
        self._shutdown_event = asyncio.Event()
        self._session: SessionPort = session or EIPSession(config.device)
        self._transport = transport or MQTTTransport(config.mqtt)
        self._context: BridgeContext | None = None
        self._pool: WorkerPool | None = None
        self._router: RequestRouter | None = None
        self._listener_task: asyncio.Task[None] | None = None

    @property
    def context(self) -> BridgeContext | None:
        return self._context

    async def start(self) -> None:
        """Bootstrap the device session and begin serving requests.

        Raises:
            ConnectionError: If the device or the broker is unreachable, or
                tag enumeration fails
        """
        logger.info("Starting EIP bridge", name=self.config.bridge.name)

        await self._session.connect()
        directory = await self._session.enumerate_tags()

        await self._transport.connect()
        publisher = ResponsePublisher(self._transport, self.config.mqtt.topic_root)
        self._context = BridgeContext(
            session=self._session,
            directory=directory,
            publisher=publisher,
        )

        self._pool = WorkerPool(
            partial(handle_request, self._context),
            size=self.config.workers.size,
            queue_size=self.config.workers.queue_size,
        )
        await self._pool.start()

        self._router = RequestRouter(self.config.mqtt.topic_root, self._pool)
        await self._transport.subscribe(self._router.subscription)
        self._listener_task = asyncio.create_task(self._listen(), name="mqtt_listener")

        logger.info(
            "EIP bridge started successfully",
            tags=len(directory),
            topic=self._router.subscription,
        )

    async def stop(self) -> None:
        """Stop the bridge gracefully."""
        logger.info("Stopping EIP bridge")

        if self._listener_task:
            self._listener_task.cancel()
            await asyncio.gather(self._listener_task, return_exceptions=True)
            self._listener_task = None

        # Stop in reverse order
        if self._pool:
            await self._pool.stop()
            logger.info("Request statistics", **self._pool.get_statistics())

        await self._transport.disconnect()

        logger.info("Device session statistics", **self._session.health_status().as_log_fields())
        await self._session.disconnect()

        logger.info("EIP bridge stopped")

    async def run_until_shutdown(self) -> None:
        """Block until a signal or the end of the message stream."""
        await self._shutdown_event.wait()

    def request_shutdown(self) -> None:
        """Ask the runtime to stop; safe to call from a signal handler."""
        self._shutdown_event.set()

    async def _listen(self) -> None:
        """Feed inbound messages to the router until the connection drops."""
        if self._router is None:
            raise RuntimeError("Router must be initialized before listening")

        try:
            async for message in self._transport.messages():
                await self._router.route(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("MQTT listener stopped", error=str(e))
        else:
            logger.warning("MQTT message stream ended")
        self.request_shutdown()


async def run_bridge(config_path: Path, override_path: Path | None = None) -> None:
    """Main entry point for running the bridge."""
    setup_logging()

    config = load_config(config_path, override_path=override_path)

    runtime = BridgeRuntime(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, runtime.request_shutdown)

    try:
        await runtime.start()
        await runtime.run_until_shutdown()
    finally:
        await runtime.stop()


def main() -> None:
    """Console script entry point."""
    from eip_bridge.cli.app import app  # noqa: PLC0415

    app()


if __name__ == "__main__":
    main()
