"""Pytest configuration and shared fixtures."""

import asyncio
import io
import json
import socket

import pytest

from serial_monitor.config import MonitorConfig
from serial_monitor.emitter import EventEmitter
from serial_monitor.ports import LoopbackPortDriver
from serial_monitor.session import Session


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture
def config() -> MonitorConfig:
    return MonitorConfig(driver="loopback", connect_timeout=2.0)


@pytest.fixture
def driver() -> LoopbackPortDriver:
    return LoopbackPortDriver()


@pytest.fixture
def output() -> io.BytesIO:
    """Captured stdout of the monitor."""
    return io.BytesIO()


@pytest.fixture
def emitter(output: io.BytesIO) -> EventEmitter:
    return EventEmitter(output)


@pytest.fixture
def session(driver: LoopbackPortDriver, emitter: EventEmitter, config: MonitorConfig) -> Session:
    return Session(driver, emitter, config)


@pytest.fixture
def read_events(output: io.BytesIO):
    """Return a function that parses every event written so far."""

    def _read() -> list[dict]:
        return [json.loads(line) for line in output.getvalue().decode("utf-8").splitlines()]

    return _read


@pytest.fixture
def wait_for_event(read_events):
    """Return a coroutine function that polls until an event type shows up."""

    async def _wait(event_type: str, timeout: float = 5.0) -> dict:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            for event in read_events():
                if event["eventType"] == event_type:
                    return event
            await asyncio.sleep(0.01)
        raise AssertionError(f"no {event_type} event within {timeout}s: {read_events()}")

    return _wait


# =============================================================================
# TCP client side
# =============================================================================


class ClientListener:
    """Plays the IDE: listens on localhost and accepts the monitor's dial."""

    def __init__(self) -> None:
        self.connections: asyncio.Queue[tuple[asyncio.StreamReader, asyncio.StreamWriter]] = (
            asyncio.Queue()
        )
        self._writers: list[asyncio.StreamWriter] = []
        self._server: asyncio.Server | None = None
        self.port = 0

    @property
    def address(self) -> str:
        return f"127.0.0.1:{self.port}"

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._accept, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def _accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.append(writer)
        await self.connections.put((reader, writer))

    async def accept(
        self, timeout: float = 5.0
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        return await asyncio.wait_for(self.connections.get(), timeout)

    async def close(self) -> None:
        for writer in self._writers:
            writer.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()


@pytest.fixture
async def listener(anyio_backend):
    client = ClientListener()
    await client.start()
    yield client
    await client.close()


@pytest.fixture
def unused_address() -> str:
    """A localhost address with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"127.0.0.1:{port}"
