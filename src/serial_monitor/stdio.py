"""Monitor protocol server over stdio.

Reads commands from stdin, one per line, and writes one JSON event per line
to stdout. Logging goes to stderr; stdout carries protocol events only.

Wire format:
    stdin:  HELLO 1 "arduino-cli"\\n
    stdout: {"eventType":"hello","message":"OK","protocolVersion":1}\\n

Example session:
    → HELLO 1 "my-ide"
    ← {"eventType":"hello","message":"OK","protocolVersion":1}
    → OPEN 127.0.0.1:5678 /dev/ttyACM0
    ← {"eventType":"open","message":"OK"}
    ← {"eventType":"port_closed","error":true,"message":"lost TCP/IP connection with the client!"}
    → QUIT
    ← {"eventType":"quit","message":"OK"}
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import BinaryIO

from .config import MonitorConfig
from .emitter import ENCODING, EventEmitter
from .errors import ChannelError
from .ports import PortDriver, create_driver
from .protocol import Command, CommandHandler
from .session import Session

logger = logging.getLogger(__name__)


class StdioMonitorServer:
    """Line protocol server bound to a pair of binary streams.

    Commands are processed strictly one after another: the next line is not
    read until the current command's event has been written.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        driver: PortDriver | None = None,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
    ) -> None:
        self.config = config or MonitorConfig()
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer

        self.emitter = EventEmitter(self._stdout)
        self.session = Session(
            driver or create_driver(self.config.driver, self.config.read_timeout),
            self.emitter,
            self.config,
        )
        self._handler = CommandHandler(self.session)
        self._running = False

    async def run(self) -> None:
        """Serve until QUIT or end of input.

        Raises:
            ChannelError: stdin or stdout failed; the open port (if any)
                has been released
        """
        self._running = True
        logger.info("Monitor ready (driver: %s)", self.config.driver)

        try:
            while self._running:
                if self.emitter.broken:
                    raise ChannelError("output channel unavailable")

                line = await self._read_line()
                if line is None:
                    logger.info("stdin closed, shutting down")
                    break

                line = line.strip()
                if line.startswith("\ufeff"):
                    line = line[1:]
                if not line:
                    continue

                await self._process_line(line)
        finally:
            self._running = False
            await self.session.shutdown()
            logger.info("Shutdown complete")

    def stop(self) -> None:
        """Signal the server to stop after the current command."""
        self._running = False

    async def _read_line(self) -> str | None:
        loop = asyncio.get_running_loop()
        try:
            raw = await loop.run_in_executor(None, self._stdin.readline)
        except (OSError, ValueError) as e:
            raise ChannelError(f"cannot read from input channel: {e}") from e
        if not raw:
            return None
        return raw.decode(ENCODING, errors="replace")

    async def _process_line(self, line: str) -> None:
        command = Command.parse(line)
        if command is None:
            return
        event = await self._handler.handle(command)
        await self.emitter.emit(event)
        if self._handler.quit_requested:
            self._running = False


async def run_stdio_server(config: MonitorConfig | None = None) -> None:
    """Run the monitor on the process's stdin/stdout."""
    server = StdioMonitorServer(config)
    await server.run()
