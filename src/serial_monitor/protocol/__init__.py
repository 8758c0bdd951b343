"""Line protocol layer.

Defines the command/event protocol spoken over the control channel:
- Commands: one ``VERB [ARG ...]`` line from the client
- Events: one JSON object per line back to the client
- Handler: maps each command onto the session and returns one event
"""

from .commands import Command, CommandType
from .events import Event, EventType
from .handler import CommandHandler

__all__ = [
    "Command",
    "CommandType",
    "Event",
    "EventType",
    "CommandHandler",
]
