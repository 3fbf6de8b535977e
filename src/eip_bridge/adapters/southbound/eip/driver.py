"""EtherNet/IP session to a Logix controller, built on pycomm3.

Tags are addressed by the symbolic names the controller reports during
enumeration, for example ``Temperature`` (controller scope) or
``Program:Main.Step`` (program scope).
"""

from __future__ import annotations

import asyncio
import socket
from typing import TYPE_CHECKING, Any

import structlog

from eip_bridge.adapters.southbound.base import BaseSession, WriteOutcome
from eip_bridge.domain.model.messages import StatusCode

if TYPE_CHECKING:
    from eip_bridge.config.schema import DeviceConfig
    from eip_bridge.domain.model.tags import Tag

# pycomm3 is imported lazily so the rest of the package loads without it
try:
    from pycomm3 import LogixDriver
except ImportError:
    LogixDriver = None

HAS_PYCOMM3: bool = LogixDriver is not None

DEFAULT_EIP_PORT = 44818

logger = structlog.get_logger(__name__)


def build_connection_path(address: str, port: int, slot: int) -> str:
    """Build the pycomm3 CIP path for a resolved address.

    The port is only spelled out when it differs from the EtherNet/IP default.
    """
    host = address if port == DEFAULT_EIP_PORT else f"{address}:{port}"
    return f"{host}/{slot}"


class EIPSession(BaseSession):
    """One CIP connection to the controller.

    pycomm3 blocks, so every driver call runs in a worker thread.
    """

    def __init__(self, config: DeviceConfig) -> None:
        """Prepare a session for the configured device.

        Raises:
            ImportError: If pycomm3 is not installed
        """
        super().__init__(config)
        if not HAS_PYCOMM3 or LogixDriver is None:
            raise ImportError("EIPSession needs pycomm3 (pip install pycomm3)")
        self._device = config
        self._driver: Any = None

    def _require_driver(self) -> Any:
        if self._driver is None:
            raise ConnectionError("Not connected")
        return self._driver

    async def _resolve(self) -> str:
        """Resolve the configured host to an IPv4 address."""
        host, port = self._device.host, self._device.port
        try:
            infos = await asyncio.get_running_loop().getaddrinfo(
                host, port, family=socket.AF_INET, type=socket.SOCK_STREAM
            )
        except socket.gaierror as e:
            raise ConnectionError(f"Cannot resolve host {host}: {e}") from e
        if not infos:
            raise ConnectionError(f"Cannot resolve host {host}")
        return str(infos[0][4][0])

    async def _open(self) -> None:
        # Tag definitions are uploaded by enumeration, not on open
        path = build_connection_path(await self._resolve(), self._device.port, self._device.slot)
        driver = LogixDriver(path, init_tags=False)
        await asyncio.to_thread(driver.open)
        self._driver = driver
        logger.debug("CIP session established", host=self._device.host, path=path)

    async def _close(self) -> None:
        driver, self._driver = self._driver, None
        if driver is not None:
            await asyncio.to_thread(driver.close)

    async def _upload_tags(self) -> list[dict[str, Any]]:
        """Controller and program scoped definitions.

        pycomm3 keeps them cached for the reads and writes that follow.
        """
        driver = self._require_driver()
        return list(await asyncio.to_thread(driver.get_tag_list, program="*"))

    async def _read_tag(self, tag: Tag) -> Any:
        """Read one tag by symbolic name.

        Raises:
            ConnectionError: If not connected
            ValueError: If the device reports an error for the tag
        """
        driver = self._require_driver()
        result = await asyncio.to_thread(driver.read, tag.name)
        if result is None:
            raise ValueError(f"No response reading tag {tag.name}")
        if getattr(result, "error", None):
            raise ValueError(f"Read failed: {result.error}")
        return result.value if hasattr(result, "value") else result

    async def _write_tag(self, tag: Tag, value: Any) -> WriteOutcome:
        """Write one tag by symbolic name.

        Arrays are addressed as ``Name{n}`` so pycomm3 sends every element;
        a bare name writes only the first. A rejection by the device comes
        back as a failed outcome.
        """
        driver = self._require_driver()
        address = f"{tag.name}{{{len(value)}}}" if isinstance(value, list) else tag.name
        result = await asyncio.to_thread(driver.write, (address, value))
        error = "no response" if result is None else getattr(result, "error", None)
        if error:
            return WriteOutcome(status_code=int(StatusCode.BAD_DEVICE_FAILURE), error=str(error))
        return WriteOutcome(status_code=int(StatusCode.GOOD))
