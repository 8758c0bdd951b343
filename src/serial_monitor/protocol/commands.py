"""Command definitions for the line protocol.

Commands arrive one per line as ``VERB [ARG ...]``. Arguments are separated
by whitespace; a double-quoted argument may contain spaces.

Example:
    HELLO 1 "arduino-cli 1.0.0"
    CONFIGURE baudrate 115200
    OPEN 127.0.0.1:5678 /dev/ttyACM0
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, Field

# A quoted argument, or a run of non-whitespace
_TOKEN = re.compile(r'"([^"]*)"|(\S+)')


class CommandType(str, Enum):
    """All supported command verbs."""

    HELLO = "HELLO"
    DESCRIBE = "DESCRIBE"
    CONFIGURE = "CONFIGURE"
    OPEN = "OPEN"
    CLOSE = "CLOSE"
    QUIT = "QUIT"


class Command(BaseModel):
    """A command read from the control channel.

    ``verb`` is upper-cased; unknown verbs are kept as-is so the handler
    can name them in its error.
    """

    verb: str
    args: list[str] = Field(default_factory=list)

    @classmethod
    def parse(cls, line: str) -> Command | None:
        """Parse one input line. Returns None for a blank line."""
        tokens = [
            match.group(1) if match.group(1) is not None else match.group(2)
            for match in _TOKEN.finditer(line)
        ]
        if not tokens:
            return None
        return cls(verb=tokens[0].upper(), args=tokens[1:])
