"""Device session contract and shared session plumbing.

Request handlers only see ``SessionPort``. ``BaseSession`` gives concrete
sessions one lock around the device, a per-operation deadline, and running
counters that are logged at shutdown.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

import structlog

from eip_bridge.domain.errors import DeviceError
from eip_bridge.domain.model.tags import TagDirectory

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from eip_bridge.config.schema import DeviceConfig
    from eip_bridge.domain.model.tags import Tag

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class SessionState(Enum):
    """Lifecycle of a device session."""

    DISCONNECTED = "disconnected"
    OPENING = "opening"
    OPEN = "open"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass
class SessionHealth:
    """Running counters for one device session."""

    state: SessionState = SessionState.DISCONNECTED
    reads: int = 0
    writes: int = 0
    rejected_writes: int = 0
    timeouts: int = 0
    failures: int = 0
    failure_streak: int = 0
    last_failure: str | None = None
    last_failure_at: datetime | None = None
    last_ok_at: datetime | None = None

    def mark_ok(self) -> None:
        self.last_ok_at = datetime.now(UTC)
        self.failure_streak = 0

    def mark_failure(self, detail: str) -> None:
        self.failures += 1
        self.failure_streak += 1
        self.last_failure = detail
        self.last_failure_at = datetime.now(UTC)

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "reads": self.reads,
            "writes": self.writes,
            "rejected_writes": self.rejected_writes,
            "timeouts": self.timeouts,
            "failures": self.failures,
        }


@dataclass(frozen=True, slots=True)
class WriteOutcome:
    """What the device answered to a write.

    Attributes:
        status_code: Device-reported status (0 when OK)
        error: Status detail when the device rejected the write
    """

    status_code: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@runtime_checkable
class SessionPort(Protocol):
    """The live device session as the request handlers use it."""

    async def connect(self) -> None:
        """Open the session.

        Raises:
            ConnectionError: If the host does not resolve or the device
                refuses the session
        """
        ...

    async def disconnect(self) -> None: ...

    async def enumerate_tags(self) -> TagDirectory:
        """Upload the device's tag definitions.

        Raises:
            ConnectionError: If the upload fails
        """
        ...

    async def read(self, tag: Tag) -> Any:
        """Return the tag's current raw value.

        Raises:
            DeviceError: If the round trip fails
        """
        ...

    async def write(self, tag: Tag, value: Any) -> WriteOutcome:
        """Send an already converted value to the tag.

        Raises:
            DeviceError: If the round trip fails
        """
        ...

    def health_status(self) -> SessionHealth: ...


class BaseSession(ABC):
    """Shared lifecycle for concrete device sessions.

    Subclasses implement the ``_open``/``_close``/``_upload_tags``/
    ``_read_tag``/``_write_tag`` primitives. Only one primitive runs against
    the device at a time.
    """

    def __init__(self, config: DeviceConfig) -> None:
        self._config = config
        self._health = SessionHealth()
        self._device_lock = asyncio.Lock()
        self._deadline_s = config.timeout_ms / 1000

    @property
    def endpoint(self) -> str:
        return f"{self._config.host}:{self._config.port}"

    def health_status(self) -> SessionHealth:
        return self._health

    @abstractmethod
    async def _open(self) -> None: ...

    @abstractmethod
    async def _close(self) -> None: ...

    @abstractmethod
    async def _upload_tags(self) -> list[dict[str, Any]]:
        """Return raw tag definitions as reported by the device."""

    @abstractmethod
    async def _read_tag(self, tag: Tag) -> Any: ...

    @abstractmethod
    async def _write_tag(self, tag: Tag, value: Any) -> WriteOutcome: ...

    async def connect(self) -> None:
        async with self._device_lock:
            if self._health.state is SessionState.OPEN:
                return

            self._health.state = SessionState.OPENING
            log = logger.bind(endpoint=self.endpoint)
            log.info("Opening device session")
            try:
                await self._open()
            except Exception as e:
                self._health.state = SessionState.FAILED
                self._health.mark_failure(str(e))
                log.error("Device session could not be opened", error=str(e))
                raise ConnectionError(f"Failed to connect to {self.endpoint}: {e}") from e

            self._health.state = SessionState.OPEN
            self._health.mark_ok()
            log.info("Device session open")

    async def disconnect(self) -> None:
        async with self._device_lock:
            if self._health.state in (SessionState.DISCONNECTED, SessionState.CLOSED):
                return
            try:
                await self._close()
            except Exception as e:
                logger.warning(
                    "Closing device session failed", endpoint=self.endpoint, error=str(e)
                )
            self._health.state = SessionState.CLOSED
            logger.info("Device session closed", endpoint=self.endpoint)

    async def enumerate_tags(self) -> TagDirectory:
        async with self._device_lock:
            logger.info("Retrieving device tags", endpoint=self.endpoint)
            try:
                definitions = await self._upload_tags()
            except Exception as e:
                self._health.mark_failure(str(e))
                logger.error("Tag upload failed", endpoint=self.endpoint, error=str(e))
                raise ConnectionError(f"Failed to enumerate tags: {e}") from e

        directory = TagDirectory.from_definitions(definitions)
        logger.info("Tags retrieved", count=len(directory))
        logger.debug("Tag directory", tags=directory.names())
        return directory

    async def read(self, tag: Tag) -> Any:
        self._health.reads += 1
        return await self._guarded("read", tag, partial(self._read_tag, tag))

    async def write(self, tag: Tag, value: Any) -> WriteOutcome:
        self._health.writes += 1
        outcome = await self._guarded("write", tag, partial(self._write_tag, tag, value))
        if not outcome.ok:
            self._health.rejected_writes += 1
            self._health.mark_failure(outcome.error or "write rejected")
            logger.warning("Device rejected write", tag=tag.name, error=outcome.error)
        return outcome

    async def _guarded(self, operation: str, tag: Tag, call: Callable[[], Awaitable[T]]) -> T:
        """Run one device primitive under the lock and the deadline.

        The caller gets its answer when the deadline passes, but the lock is
        only released once the primitive itself has finished, so a stalled
        driver call never overlaps the next one.

        Raises:
            DeviceError: On timeout or any failure of the primitive
        """
        await self._device_lock.acquire()
        try:
            pending: asyncio.Future[T] = asyncio.ensure_future(call())
        except BaseException:
            self._device_lock.release()
            raise
        pending.add_done_callback(lambda _: self._device_lock.release())

        try:
            result = await asyncio.wait_for(asyncio.shield(pending), timeout=self._deadline_s)
        except TimeoutError as e:
            detail = f"{operation} of tag {tag.name} timed out after {self._deadline_s}s"
            self._health.timeouts += 1
            self._health.mark_failure(detail)
            pending.add_done_callback(partial(_log_overrun, operation, tag.name))
            logger.warning("Device did not answer in time", operation=operation, tag=tag.name)
            raise DeviceError(detail) from e
        except Exception as e:
            self._health.mark_failure(str(e))
            logger.warning(
                "Device operation failed", operation=operation, tag=tag.name, error=str(e)
            )
            if isinstance(e, DeviceError):
                raise
            raise DeviceError(str(e)) from e

        self._health.mark_ok()
        return result


def _log_overrun(operation: str, tag: str, pending: asyncio.Future[Any]) -> None:
    if pending.cancelled():
        return
    error = pending.exception()
    logger.info(
        "Timed out device call finished",
        operation=operation,
        tag=tag,
        error=None if error is None else str(error),
    )
