"""Event definitions for the line protocol.

Every command produces exactly one event. The only uncorrelated event is
``port_closed``, emitted when the bridge loses the port or the client.

Wire form is one compact JSON object per line:
    {"eventType":"hello","message":"OK","protocolVersion":1}
    {"eventType":"configure","error":true,"message":"invalid value for parameter baudrate: 7"}
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..configuration import PortDescriptor

OK = "OK"


class EventType(str, Enum):
    """All event types in the protocol."""

    # Command responses
    HELLO = "hello"
    DESCRIBE = "describe"
    CONFIGURE = "configure"
    OPEN = "open"
    CLOSE = "close"
    QUIT = "quit"

    # Uncorrelated
    PORT_CLOSED = "port_closed"
    COMMAND_ERROR = "command_error"


class Event(BaseModel):
    """An event from the monitor to its client.

    Optional fields are left out of the wire form when unset, so a success
    event carries no ``error`` key at all.
    """

    model_config = ConfigDict(populate_by_name=True)

    event_type: str = Field(alias="eventType")
    error: bool | None = None
    message: str = OK
    protocol_version: int | None = Field(default=None, alias="protocolVersion")
    port_description: PortDescriptor | None = None

    def is_error(self) -> bool:
        return bool(self.error)

    def to_json(self) -> str:
        """Serialize to the compact single-line wire form (no newline)."""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def create(
        cls,
        event_type: str | EventType,
        message: str = OK,
        error: bool = False,
        **fields: object,
    ) -> Event:
        """Factory method for creating events."""
        return cls(
            event_type=event_type.value if isinstance(event_type, EventType) else event_type,
            message=message,
            error=True if error else None,
            **fields,
        )

    # =========================================================================
    # Factory methods for common events
    # =========================================================================

    @classmethod
    def ok(cls, event_type: str | EventType) -> Event:
        """Create a plain success response."""
        return cls.create(event_type)

    @classmethod
    def failure(cls, event_type: str | EventType, message: str) -> Event:
        """Create an error response for a command."""
        return cls.create(event_type, message, error=True)

    @classmethod
    def hello(cls, protocol_version: int) -> Event:
        return cls.create(EventType.HELLO, protocol_version=protocol_version)

    @classmethod
    def describe(cls, descriptor: PortDescriptor) -> Event:
        return cls.create(EventType.DESCRIBE, port_description=descriptor)

    @classmethod
    def port_closed(cls, message: str) -> Event:
        """Create the asynchronous notice that the bridge went down."""
        return cls.failure(EventType.PORT_CLOSED, message)

    @classmethod
    def command_error(cls, message: str) -> Event:
        return cls.failure(EventType.COMMAND_ERROR, message)
