"""Port capability contract.

The protocol engine only talks to ports through these two classes. A driver
knows how to open one kind of port; the handle it returns is the live port.
Every method that can fail raises PortError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class PortHandle(ABC):
    """An open port."""

    @abstractmethod
    async def read(self, size: int) -> bytes:
        """Wait for at least one byte and return up to ``size`` bytes.

        Returns b"" only when the port has been closed.
        """
        ...

    @abstractmethod
    async def write(self, data: bytes) -> int:
        """Write all of ``data``, returning the number of bytes written."""
        ...

    @abstractmethod
    async def set_parameter(self, name: str, value: str) -> None:
        """Apply one configuration parameter to the open port."""
        ...

    @abstractmethod
    async def reset_buffers(self) -> None:
        """Discard bytes queued on the input and output paths."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the port. Pending reads return promptly. Idempotent."""
        ...


class PortDriver(ABC):
    """Opens ports of one kind."""

    #: Protocol name reported by DESCRIBE
    protocol: str = ""

    @abstractmethod
    async def open(self, address: str, config: dict[str, str]) -> PortHandle:
        """Open ``address`` configured with the selected parameter values."""
        ...
