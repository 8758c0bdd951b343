"""TCP bridge between an open port and the client's TCP connection.

Two copy loops run as independent tasks, port -> TCP and TCP -> port. Each
has at most one chunk in flight: it does not read again until the previous
chunk has been written (``drain()`` on the TCP side), so a slow peer only
stalls its own direction.

The first loop to fail resolves a one-shot future with the side that
failed. The bridge never closes the port or the socket itself; that is the
session's job.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from .errors import PortError
from .ports.base import PortHandle

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096


class BridgeFailure(str, Enum):
    """Which side of the bridge went away."""

    PORT = "port"
    TCP = "tcp"

    def describe(self, protocol: str) -> str:
        """Message for the ``port_closed`` event."""
        if self is BridgeFailure.PORT:
            return f"{protocol} port disappeared!"
        return "lost TCP/IP connection with the client!"


class TcpBridge:
    """Relays raw bytes between a port handle and a TCP stream pair.

    Usage:
        bridge = TcpBridge(port, reader, writer)
        bridge.start()
        failure = await bridge.wait()   # resolves when either side fails
        await bridge.stop()
    """

    def __init__(
        self,
        port: PortHandle,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._port = port
        self._reader = reader
        self._writer = writer
        self._chunk_size = chunk_size
        self._failure: asyncio.Future[BridgeFailure] | None = None
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Spawn both copy loops on the running event loop."""
        if self._tasks:
            raise RuntimeError("bridge already started")
        self._failure = asyncio.get_running_loop().create_future()
        self._tasks = [
            asyncio.create_task(self._port_to_tcp(), name="bridge-port-to-tcp"),
            asyncio.create_task(self._tcp_to_port(), name="bridge-tcp-to-port"),
        ]

    async def wait(self) -> BridgeFailure:
        """Wait until one of the loops fails and return the failing side."""
        if self._failure is None:
            raise RuntimeError("bridge not started")
        return await asyncio.shield(self._failure)

    async def stop(self) -> None:
        """Cancel both loops and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._failure is not None and not self._failure.done():
            self._failure.cancel()

    def _fail(self, side: BridgeFailure, error: BaseException | None) -> None:
        if self._failure is None or self._failure.done():
            return
        logger.info("Bridge stopped on %s side: %s", side.value, error or "end of stream")
        self._failure.set_result(side)

    async def _port_to_tcp(self) -> None:
        while True:
            try:
                data = await self._port.read(self._chunk_size)
            except PortError as e:
                self._fail(BridgeFailure.PORT, e)
                return
            if not data:
                self._fail(BridgeFailure.PORT, None)
                return
            try:
                self._writer.write(data)
                await self._writer.drain()
            except (ConnectionError, OSError) as e:
                self._fail(BridgeFailure.TCP, e)
                return

    async def _tcp_to_port(self) -> None:
        while True:
            try:
                data = await self._reader.read(self._chunk_size)
            except (ConnectionError, OSError) as e:
                self._fail(BridgeFailure.TCP, e)
                return
            if not data:
                self._fail(BridgeFailure.TCP, None)
                return
            try:
                await self._port.write(data)
            except PortError as e:
                self._fail(BridgeFailure.PORT, e)
                return
