"""Bounded worker pool draining routed requests.

The queue bound is the bridge's backpressure point: when it is full the
router waits, which in turn pauses consumption of inbound messages.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from eip_bridge.application.router import Job

logger = structlog.get_logger(__name__)

JobHandler = Callable[["Job"], Awaitable[None]]


class WorkerPool:
    """Fixed number of worker tasks consuming a bounded job queue."""

    def __init__(self, handler: JobHandler, *, size: int = 4, queue_size: int = 100) -> None:
        self._handler = handler
        self._size = size
        self._queue: asyncio.Queue[Job] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task[None]] = []
        self._processed = 0
        self._failed = 0

    @property
    def depth(self) -> int:
        """Number of queued jobs not yet picked up."""
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Start the worker tasks."""
        if self._workers:
            return

        self._workers = [
            asyncio.create_task(self._worker(index), name=f"request_worker_{index}")
            for index in range(self._size)
        ]
        logger.info("Worker pool started", size=self._size, queue_size=self._queue.maxsize)

    async def submit(self, job: Job) -> None:
        """Enqueue a job, waiting while the queue is full."""
        if self._queue.full():
            logger.warning(
                "Request queue full, waiting for a free slot",
                depth=self.depth,
                category=job.category.value,
            )
        await self._queue.put(job)

    async def join(self) -> None:
        """Wait until every submitted job has been handled."""
        await self._queue.join()

    async def stop(self, drain_timeout_s: float = 5.0) -> None:
        """Let queued jobs finish (bounded by ``drain_timeout_s``), then cancel workers."""
        if not self._workers:
            return

        logger.info("Stopping worker pool", pending=self.depth)
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout_s)
        except TimeoutError:
            logger.warning("Worker pool drain timed out", pending=self.depth)

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("Worker pool stopped", processed=self._processed, failed=self._failed)

    def get_statistics(self) -> dict[str, int]:
        return {
            "workers": len(self._workers),
            "pending": self.depth,
            "processed": self._processed,
            "failed": self._failed,
        }

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            started = time.monotonic()
            try:
                await self._handler(job)
                self._processed += 1
            except Exception as e:
                self._failed += 1
                logger.error(
                    "Request handler failed",
                    worker=index,
                    category=job.category.value,
                    topic=job.topic,
                    error=str(e),
                )
            finally:
                self._queue.task_done()
                logger.debug(
                    "Request handled",
                    worker=index,
                    queued_ms=round((started - job.received_at) * 1000, 1),
                    handled_ms=round((time.monotonic() - started) * 1000, 1),
                )
