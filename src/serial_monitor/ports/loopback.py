"""In-memory loopback port driver.

Bytes written to a loopback port come straight back on read, like a serial
line with TX wired to RX. Used by the test suite and handy for exercising an
IDE integration without hardware (``serial-monitor --driver loopback``).

Failures can be injected:
    driver.unavailable.add("/dev/ttyX")     # OPEN fails
    driver.rejected_parameters.add("dtr")   # live CONFIGURE fails
    handle.disconnect()                     # device vanishes while open
"""

from __future__ import annotations

import asyncio
import logging

from ..errors import PortError
from .base import PortDriver, PortHandle

logger = logging.getLogger(__name__)


class LoopbackPortHandle(PortHandle):
    """An open loopback port."""

    def __init__(
        self,
        address: str,
        config: dict[str, str],
        rejected_parameters: set[str] | None = None,
    ) -> None:
        self.address = address
        self._rejected = rejected_parameters if rejected_parameters is not None else set()
        self.settings = dict(config)
        self.resets = 0
        self.closed = False
        self._buffer = bytearray()
        self._failure: str | None = None
        self._wakeup = asyncio.Event()

    async def read(self, size: int) -> bytes:
        while True:
            if self._failure is not None:
                raise PortError(self._failure)
            if self.closed:
                return b""
            if self._buffer:
                data = bytes(self._buffer[:size])
                del self._buffer[:size]
                return data
            self._wakeup.clear()
            await self._wakeup.wait()

    async def write(self, data: bytes) -> int:
        if self._failure is not None:
            raise PortError(self._failure)
        if self.closed:
            raise PortError(f"{self.address} is closed")
        self._buffer.extend(data)
        self._wakeup.set()
        return len(data)

    async def set_parameter(self, name: str, value: str) -> None:
        if self.closed:
            raise PortError(f"{self.address} is closed")
        if name in self._rejected:
            raise PortError(f"device rejected {name}={value}")
        self.settings[name] = value

    async def reset_buffers(self) -> None:
        self._buffer.clear()
        self.resets += 1

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._wakeup.set()
        logger.info("Closed loopback port %s", self.address)

    def disconnect(self, reason: str = "device disconnected") -> None:
        """Simulate the device disappearing: pending and future I/O fails."""
        self._failure = reason
        self._wakeup.set()


class LoopbackPortDriver(PortDriver):
    """Opens loopback ports. One open handle per address at a time."""

    protocol = "loopback"

    def __init__(self) -> None:
        self.handles: list[LoopbackPortHandle] = []
        self.unavailable: set[str] = set()
        self.rejected_parameters: set[str] = set()

    @property
    def open_handles(self) -> list[LoopbackPortHandle]:
        return [handle for handle in self.handles if not handle.closed]

    async def open(self, address: str, config: dict[str, str]) -> PortHandle:
        if address in self.unavailable:
            raise PortError(f"no such port: {address}")
        if any(handle.address == address for handle in self.open_handles):
            raise PortError(f"port busy: {address}")
        handle = LoopbackPortHandle(address, config, self.rejected_parameters)
        self.handles.append(handle)
        logger.info("Opened loopback port %s", address)
        return handle
