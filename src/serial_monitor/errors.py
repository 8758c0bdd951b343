"""Error taxonomy for the monitor protocol engine.

Every recoverable error carries the exact message that goes on the wire.
The command handler turns them into the error event of the command that
raised them; nothing here knows about JSON.

Hierarchy:
    MonitorError
    ├── ProtocolError          -> command_error event
    ├── CommandSyntaxError     -> error event of the offending command
    ├── ParameterError
    │   ├── ParameterNotFound
    │   └── InvalidValue
    ├── ApplyFailed            -> live reconfiguration rejected by the port
    ├── LifecycleError
    │   ├── AlreadyOpen
    │   └── AlreadyClosed
    └── TransportError
        ├── OpenFailed
        └── ConnectFailed

PortError is raised by port drivers and never reaches the wire as-is.
ChannelError means stdin/stdout itself is gone and is fatal.
"""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for errors reported as structured events."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProtocolError(MonitorError):
    """Unrecognized command, or a command sent before HELLO."""


class CommandSyntaxError(MonitorError):
    """A known command with wrong arity or an unparsable argument."""


class ParameterError(MonitorError):
    """CONFIGURE named a bad parameter or value. The store is unchanged."""


class ParameterNotFound(ParameterError):
    def __init__(self, name: str) -> None:
        super().__init__(f"could not find parameter named {name}")
        self.name = name


class InvalidValue(ParameterError):
    def __init__(self, name: str, value: str) -> None:
        super().__init__(f"invalid value for parameter {name}: {value}")
        self.name = name
        self.value = value


class ApplyFailed(MonitorError):
    """The open port rejected a new value. The store was rolled back."""


class LifecycleError(MonitorError):
    """Command is not valid in the current port state."""


class AlreadyOpen(LifecycleError):
    def __init__(self) -> None:
        super().__init__("port already opened")


class AlreadyClosed(LifecycleError):
    def __init__(self) -> None:
        super().__init__("port already closed")


class TransportError(MonitorError):
    """OPEN could not acquire the port or reach the client."""


class OpenFailed(TransportError):
    pass


class ConnectFailed(TransportError):
    pass


class PortError(Exception):
    """Raised by port drivers and handles for any device-level failure."""


class ChannelError(Exception):
    """The control channel (stdin/stdout) can no longer be used."""
