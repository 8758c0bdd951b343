"""Serial port driver backed by pyserial.

Ports are opened with ``serial.serial_for_url`` so plain device paths
(``/dev/ttyACM0``, ``COM3``) and pyserial URLs (``loop://``,
``rfc2217://host:port``) both work.

pyserial is blocking; every call that touches the device runs in a worker
thread via ``asyncio.to_thread``. Reads poll with a short timeout so that
closing the port unblocks a pending read within one poll interval.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import serial
import serial.tools.list_ports

from ..errors import PortError
from .base import PortDriver, PortHandle

logger = logging.getLogger(__name__)

PARITIES = {
    "none": serial.PARITY_NONE,
    "even": serial.PARITY_EVEN,
    "odd": serial.PARITY_ODD,
    "mark": serial.PARITY_MARK,
    "space": serial.PARITY_SPACE,
}

# pyserial has no 9 data bits mode, so "9" is deliberately absent
BYTESIZES = {
    "5": serial.FIVEBITS,
    "6": serial.SIXBITS,
    "7": serial.SEVENBITS,
    "8": serial.EIGHTBITS,
}

STOPBITS = {
    "1": serial.STOPBITS_ONE,
    "1.5": serial.STOPBITS_ONE_POINT_FIVE,
    "2": serial.STOPBITS_TWO,
}

SWITCHES = {"on": True, "off": False}


def _baudrate(value: str) -> int:
    try:
        baud = int(value)
    except ValueError:
        raise PortError(f"unsupported baudrate: {value}") from None
    if baud <= 0:
        raise PortError(f"unsupported baudrate: {value}")
    return baud


def _lookup(table: dict[str, Any], what: str, value: str) -> Any:
    try:
        return table[value]
    except KeyError:
        raise PortError(f"unsupported {what}: {value}") from None


# parameter name -> (pyserial attribute, converter)
SETTINGS = {
    "baudrate": ("baudrate", _baudrate),
    "parity": ("parity", lambda v: _lookup(PARITIES, "parity", v)),
    "bits": ("bytesize", lambda v: _lookup(BYTESIZES, "data bits", v)),
    "stop_bits": ("stopbits", lambda v: _lookup(STOPBITS, "stop bits", v)),
    "rts": ("rts", lambda v: _lookup(SWITCHES, "RTS state", v)),
    "dtr": ("dtr", lambda v: _lookup(SWITCHES, "DTR state", v)),
}


def port_settings(config: dict[str, str]) -> dict[str, Any]:
    """Translate selected parameter values into pyserial attribute values.

    Raises:
        PortError: a parameter is unknown or its value has no pyserial mapping
    """
    settings: dict[str, Any] = {}
    for name, value in config.items():
        attribute, convert = _setting(name)
        settings[attribute] = convert(value)
    return settings


def _setting(name: str) -> tuple[str, Any]:
    try:
        return SETTINGS[name]
    except KeyError:
        raise PortError(f"unsupported serial parameter: {name}") from None


def list_ports() -> list[dict[str, str]]:
    """Describe the serial devices present on this machine."""
    return [
        {
            "address": port.device,
            "description": port.description or "",
            "hwid": port.hwid or "",
        }
        for port in sorted(serial.tools.list_ports.comports(), key=lambda p: p.device)
    ]


class SerialPortHandle(PortHandle):
    """An open pyserial port."""

    def __init__(self, port: serial.SerialBase, address: str) -> None:
        self._serial = port
        self._address = address
        self._closed = False

    @property
    def address(self) -> str:
        return self._address

    async def read(self, size: int) -> bytes:
        while not self._closed:
            try:
                data = await asyncio.to_thread(self._read_available, size)
            except (serial.SerialException, OSError, TypeError) as e:
                if self._closed:
                    break
                raise PortError(f"error reading {self._address}: {e}") from e
            if data:
                return data
        return b""

    def _read_available(self, size: int) -> bytes:
        waiting = self._serial.in_waiting
        return self._serial.read(min(max(waiting, 1), size))

    async def write(self, data: bytes) -> int:
        if self._closed:
            raise PortError(f"{self._address} is closed")
        try:
            written = await asyncio.to_thread(self._serial.write, data)
        except (serial.SerialException, OSError) as e:
            raise PortError(f"error writing {self._address}: {e}") from e
        return written if written is not None else len(data)

    async def set_parameter(self, name: str, value: str) -> None:
        attribute, convert = _setting(name)
        converted = convert(value)
        try:
            await asyncio.to_thread(setattr, self._serial, attribute, converted)
        except (serial.SerialException, OSError, ValueError) as e:
            raise PortError(f"could not set {name} to {value}: {e}") from e

    async def reset_buffers(self) -> None:
        try:
            await asyncio.to_thread(self._serial.reset_input_buffer)
            await asyncio.to_thread(self._serial.reset_output_buffer)
        except (serial.SerialException, OSError) as e:
            raise PortError(f"could not reset buffers of {self._address}: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Wake a reader blocked inside pyserial where the backend supports it
        cancel_read = getattr(self._serial, "cancel_read", None)
        if cancel_read is not None:
            try:
                cancel_read()
            except (serial.SerialException, OSError) as e:
                logger.debug("cancel_read on %s failed: %s", self._address, e)
        try:
            await asyncio.to_thread(self._serial.close)
        except (serial.SerialException, OSError) as e:
            raise PortError(f"error closing {self._address}: {e}") from e
        logger.info("Closed serial port %s", self._address)


class SerialPortDriver(PortDriver):
    """Opens hardware serial ports (and pyserial URL ports)."""

    protocol = "serial"

    def __init__(self, read_timeout: float = 0.1) -> None:
        self._read_timeout = read_timeout

    async def open(self, address: str, config: dict[str, str]) -> PortHandle:
        settings = port_settings(config)
        try:
            port = await asyncio.to_thread(self._open, address, settings)
        except (serial.SerialException, OSError, ValueError) as e:
            raise PortError(str(e)) from e
        logger.info("Opened serial port %s (%s)", address, settings)
        return SerialPortHandle(port, address)

    def _open(self, address: str, settings: dict[str, Any]) -> serial.SerialBase:
        port = serial.serial_for_url(address, do_not_open=True)
        for attribute, value in settings.items():
            setattr(port, attribute, value)
        port.timeout = self._read_timeout
        port.open()
        return port
