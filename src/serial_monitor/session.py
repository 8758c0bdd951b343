"""Monitor session: the port lifecycle state machine.

One Session exists per process. It starts Closed with default configuration
and moves to Open when OPEN acquires both the port and the client's TCP
connection. While Open it is the only owner of those two handles and the
only code that closes them.

Teardown can be triggered by an operator (CLOSE, QUIT, end of input) or by
the bridge when either side fails. Both paths race for a single-shot claim;
whichever wins performs the teardown. Only a bridge-initiated teardown emits
``port_closed``.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from enum import Enum

from .bridge import BridgeFailure, TcpBridge
from .config import MonitorConfig
from .configuration import ConfigurationStore, PortDescriptor, default_descriptor
from .emitter import EventEmitter
from .errors import (
    AlreadyClosed,
    AlreadyOpen,
    ChannelError,
    ConnectFailed,
    OpenFailed,
    PortError,
)
from .ports.base import PortDriver, PortHandle
from .protocol.events import Event

logger = logging.getLogger(__name__)


class PortState(str, Enum):
    """Port lifecycle states."""

    CLOSED = "closed"
    OPEN = "open"


def parse_client_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6addr]:port``) into host and port number.

    Raises:
        ConnectFailed: the address is not a usable TCP endpoint
    """
    host, sep, port = address.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if not sep or not host:
        raise ConnectFailed(f"invalid client address: {address}")
    try:
        number = int(port)
    except ValueError:
        raise ConnectFailed(f"invalid client address: {address}") from None
    if not 0 < number < 65536:
        raise ConnectFailed(f"invalid client address: {address}")
    return host, number


class Session:
    """Per-process monitor state: negotiated protocol, configuration, open port.

    Usage:
        session = Session(LoopbackPortDriver(), emitter)
        session.hello(1, "arduino-cli")
        await session.open("127.0.0.1:5678", "/dev/ttyACM0")
        await session.configure("baudrate", "115200")
        await session.close()
    """

    def __init__(
        self,
        driver: PortDriver,
        emitter: EventEmitter,
        config: MonitorConfig | None = None,
        store: ConfigurationStore | None = None,
    ) -> None:
        self.config = config or MonitorConfig()
        self.store = store or ConfigurationStore(default_descriptor(driver.protocol))
        self.protocol_version: int | None = None
        self.user_agent: str | None = None
        self.state = PortState.CLOSED

        self._driver = driver
        self._emitter = emitter

        # Live handles, only set while Open
        self._port: PortHandle | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._bridge: TcpBridge | None = None
        self._watcher: asyncio.Task[None] | None = None

        # Single-shot teardown claim, and "no teardown in flight"
        self._closing = False
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def greeted(self) -> bool:
        """True once HELLO has been accepted."""
        return self.protocol_version is not None

    @property
    def is_open(self) -> bool:
        return self.state is PortState.OPEN

    # =========================================================================
    # HELLO / DESCRIBE / CONFIGURE
    # =========================================================================

    def hello(self, protocol_version: int, user_agent: str) -> int:
        """Record the client and return the negotiated protocol version."""
        negotiated = min(protocol_version, self.config.max_protocol_version)
        self.protocol_version = negotiated
        self.user_agent = user_agent
        logger.info(
            "Client %r requested protocol %d, using %d", user_agent, protocol_version, negotiated
        )
        return negotiated

    def describe(self) -> PortDescriptor:
        return self.store.describe()

    async def configure(self, name: str, value: str) -> None:
        """Select a parameter value, applying it to the port when Open."""
        apply = None
        if self.is_open and not self._closing and self._port is not None:
            apply = self._port.set_parameter
        await self.store.configure(name, value, apply)

    # =========================================================================
    # OPEN / CLOSE / QUIT
    # =========================================================================

    async def open(self, client_address: str, board_port: str) -> None:
        """Open ``board_port`` and bridge it to the client at ``client_address``.

        Raises:
            AlreadyOpen: a port is already open; nothing is changed
            OpenFailed: the driver could not open the port
            ConnectFailed: the client could not be reached; the port is released
        """
        await self._idle.wait()
        if self.is_open:
            raise AlreadyOpen()

        host, tcp_port = parse_client_address(client_address)

        try:
            handle = await self._driver.open(board_port, self.store.snapshot())
        except PortError as e:
            raise OpenFailed(str(e)) from e

        # Drop whatever the device queued before we got here
        try:
            await handle.reset_buffers()
        except PortError as e:
            logger.debug("Could not reset buffers of %s: %s", board_port, e)

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, tcp_port),
                timeout=self.config.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            await self._close_port(handle)
            reason = str(e) or "connection timed out"
            raise ConnectFailed(f"can't connect to client at {client_address}: {reason}") from e

        sock = writer.get_extra_info("socket")
        if sock is not None:
            try:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError as e:
                logger.debug("Could not set TCP_NODELAY: %s", e)

        self._port = handle
        self._writer = writer
        self._closing = False
        self.state = PortState.OPEN

        self._bridge = TcpBridge(handle, reader, writer, self.config.chunk_size)
        self._bridge.start()
        self._watcher = asyncio.create_task(self._watch(self._bridge), name="bridge-watcher")
        logger.info("Bridging %s <-> %s", board_port, client_address)

    async def close(self) -> None:
        """Operator close. Never produces a ``port_closed`` event.

        Raises:
            AlreadyClosed: no port is open (including when the bridge just
                closed it on its own)
        """
        await self._idle.wait()
        if not self._claim_teardown():
            raise AlreadyClosed()
        await self._release()

    async def quit(self) -> None:
        """Tear down whatever is open. Always succeeds."""
        await self.shutdown()

    async def shutdown(self) -> None:
        """Best-effort teardown used by QUIT and by end of input."""
        await self._idle.wait()
        if self._claim_teardown():
            await self._release()

    # =========================================================================
    # Teardown
    # =========================================================================

    def _claim_teardown(self) -> bool:
        # No await between check and set: the claim is atomic on the loop
        if self._closing or not self.is_open:
            return False
        self._closing = True
        self._idle.clear()
        return True

    async def _watch(self, bridge: TcpBridge) -> None:
        failure = await bridge.wait()
        if not self._claim_teardown():
            return
        await self._release()
        await self._report_closed(failure)

    async def _report_closed(self, failure: BridgeFailure) -> None:
        try:
            await self._emitter.emit(Event.port_closed(failure.describe(self._driver.protocol)))
        except ChannelError as e:
            logger.error("Could not report closed port: %s", e)

    async def _release(self) -> None:
        """Stop the bridge, then close TCP and the port. Every step runs."""
        watcher, self._watcher = self._watcher, None
        bridge, self._bridge = self._bridge, None
        writer, self._writer = self._writer, None
        port, self._port = self._port, None

        try:
            if watcher is not None and watcher is not asyncio.current_task():
                watcher.cancel()
                await asyncio.gather(watcher, return_exceptions=True)

            if bridge is not None:
                try:
                    await bridge.stop()
                except Exception as e:
                    logger.warning("Error stopping bridge: %s", e)

            if writer is not None:
                # Unsent data is discarded; a graceful close would wait on a
                # peer that may have stopped reading
                try:
                    writer.transport.abort()
                    await writer.wait_closed()
                except (ConnectionError, OSError) as e:
                    logger.debug("Error closing client connection: %s", e)

            if port is not None:
                await self._close_port(port)
        finally:
            self.state = PortState.CLOSED
            self._closing = False
            self._idle.set()
            logger.info("Port closed")

    async def _close_port(self, handle: PortHandle) -> None:
        try:
            await handle.close()
        except PortError as e:
            logger.warning("Error closing port: %s", e)
