"""Port drivers.

The engine depends only on PortDriver/PortHandle. Concrete drivers:
- SerialPortDriver: hardware serial ports via pyserial
- LoopbackPortDriver: in-memory echo port for tests and demos
"""

from __future__ import annotations

from .base import PortDriver, PortHandle
from .loopback import LoopbackPortDriver, LoopbackPortHandle
from .serial_port import SerialPortDriver, SerialPortHandle


def create_driver(name: str, read_timeout: float = 0.1) -> PortDriver:
    """Create the driver registered under ``name``."""
    match name:
        case "serial":
            return SerialPortDriver(read_timeout=read_timeout)
        case "loopback":
            return LoopbackPortDriver()
        case _:
            raise ValueError(f"Unknown port driver: {name}")


__all__ = [
    "PortDriver",
    "PortHandle",
    "LoopbackPortDriver",
    "LoopbackPortHandle",
    "SerialPortDriver",
    "SerialPortHandle",
    "create_driver",
]
