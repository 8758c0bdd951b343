"""Runtime configuration for the monitor process.

Values come from defaults, then environment variables, then CLI options
(the CLI overrides whatever ``from_env`` produced).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DRIVERS = ("serial", "loopback")

# Highest protocol version this engine speaks
PROTOCOL_VERSION = 1


@dataclass
class MonitorConfig:
    """Configuration for a monitor process."""

    driver: str = "serial"
    connect_timeout: float = 10.0
    chunk_size: int = 4096
    read_timeout: float = 0.1
    max_protocol_version: int = PROTOCOL_VERSION

    def __post_init__(self) -> None:
        if self.driver not in DRIVERS:
            raise ValueError(f"Unknown port driver: {self.driver} (expected one of {DRIVERS})")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.read_timeout <= 0:
            raise ValueError("read_timeout must be positive")

    @classmethod
    def from_env(cls) -> MonitorConfig:
        """Build a config from SERIAL_MONITOR_* environment variables."""
        kwargs: dict[str, object] = {}
        if driver := os.environ.get("SERIAL_MONITOR_DRIVER"):
            kwargs["driver"] = driver
        if timeout := os.environ.get("SERIAL_MONITOR_CONNECT_TIMEOUT"):
            kwargs["connect_timeout"] = float(timeout)
        if chunk := os.environ.get("SERIAL_MONITOR_CHUNK_SIZE"):
            kwargs["chunk_size"] = int(chunk)
        if read_timeout := os.environ.get("SERIAL_MONITOR_READ_TIMEOUT"):
            kwargs["read_timeout"] = float(read_timeout)
        return cls(**kwargs)  # type: ignore[arg-type]
