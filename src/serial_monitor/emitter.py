"""Event emitter: the single output gate for the control channel.

Command responses and asynchronous ``port_closed`` notices are written by
different tasks. Each event is written as one complete line under a lock,
so two events can never interleave their bytes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import BinaryIO

from .errors import ChannelError
from .protocol.events import Event

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NEWLINE = "\n"


class EventEmitter:
    """Serializes events to a binary stream, one JSON object per line."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._lock = asyncio.Lock()
        self._error: Exception | None = None

    @property
    def broken(self) -> bool:
        """True once a write to the channel has failed."""
        return self._error is not None

    async def emit(self, event: Event) -> None:
        """Write one event as a full line.

        Raises:
            ChannelError: the output channel cannot be written
        """
        line = (event.to_json() + NEWLINE).encode(ENCODING)
        async with self._lock:
            if self._error is not None:
                raise ChannelError(f"output channel unavailable: {self._error}")
            try:
                self._stream.write(line)
                self._stream.flush()
            except (OSError, ValueError) as e:
                self._error = e
                raise ChannelError(f"cannot write to output channel: {e}") from e
        logger.debug("Sent event: %s", event.event_type)
