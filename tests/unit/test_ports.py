"""Tests for the port drivers."""

import pytest
import serial

from serial_monitor.configuration import default_descriptor
from serial_monitor.errors import PortError
from serial_monitor.ports import LoopbackPortDriver, SerialPortDriver, create_driver
from serial_monitor.ports.serial_port import port_settings


def default_config() -> dict[str, str]:
    return {
        name: parameter.selected
        for name, parameter in default_descriptor().configuration_parameters.items()
    }


# =============================================================================
# Serial: value mapping
# =============================================================================


class TestSerialSettings:
    """Descriptor labels map onto pyserial values, or fail loudly."""

    def test_default_config(self):
        """The default selection is 9600 8N1 with both lines on."""
        assert port_settings(default_config()) == {
            "baudrate": 9600,
            "parity": serial.PARITY_NONE,
            "bytesize": serial.EIGHTBITS,
            "stopbits": serial.STOPBITS_ONE,
            "rts": True,
            "dtr": True,
        }

    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("none", serial.PARITY_NONE),
            ("even", serial.PARITY_EVEN),
            ("odd", serial.PARITY_ODD),
            ("mark", serial.PARITY_MARK),
            ("space", serial.PARITY_SPACE),
        ],
    )
    def test_parity(self, label, expected):
        """Every parity label is mapped (lower-case, as DESCRIBE lists them)."""
        assert port_settings({"parity": label}) == {"parity": expected}

    def test_all_described_values_except_nine_bits_map(self):
        """Every value DESCRIBE offers maps, apart from 9 data bits."""
        descriptor = default_descriptor()
        for name, parameter in descriptor.configuration_parameters.items():
            for value in parameter.values:
                if (name, value) == ("bits", "9"):
                    continue
                port_settings({name: value})

    def test_nine_data_bits_rejected(self):
        """pyserial cannot express 9 data bits; it must not default silently."""
        with pytest.raises(PortError, match="unsupported data bits: 9"):
            port_settings({"bits": "9"})

    def test_unknown_parameter_rejected(self):
        with pytest.raises(PortError, match="unsupported serial parameter"):
            port_settings({"flow": "xonxoff"})

    def test_bad_baudrate(self):
        with pytest.raises(PortError):
            port_settings({"baudrate": "fast"})


# =============================================================================
# Serial: pyserial loop:// URL
# =============================================================================


class TestSerialLoopUrl:
    """Exercise the real driver against pyserial's loop:// port."""

    @pytest.mark.anyio
    async def test_echo(self):
        """Bytes written come back on read."""
        handle = await SerialPortDriver(read_timeout=0.05).open("loop://", default_config())
        try:
            await handle.reset_buffers()
            assert await handle.write(b"hello") == 5
            assert await handle.read(64) == b"hello"
        finally:
            await handle.close()

    @pytest.mark.anyio
    async def test_set_parameter(self):
        """Mode and control line parameters apply to an open port."""
        handle = await SerialPortDriver(read_timeout=0.05).open("loop://", default_config())
        try:
            await handle.set_parameter("baudrate", "115200")
            await handle.set_parameter("parity", "even")
            await handle.set_parameter("dtr", "off")
            with pytest.raises(PortError):
                await handle.set_parameter("bits", "9")
        finally:
            await handle.close()

    @pytest.mark.anyio
    async def test_read_after_close(self):
        """A closed port reads as end of stream."""
        handle = await SerialPortDriver(read_timeout=0.05).open("loop://", default_config())
        await handle.close()
        await handle.close()

        assert await handle.read(64) == b""
        with pytest.raises(PortError):
            await handle.write(b"x")

    @pytest.mark.anyio
    async def test_open_missing_device(self):
        """Opening a device that does not exist raises PortError."""
        with pytest.raises(PortError):
            await SerialPortDriver().open("/dev/serial-monitor-no-such-device", default_config())

    @pytest.mark.anyio
    async def test_open_with_unmapped_value(self):
        """An unmapped value fails the open instead of picking a default."""
        config = default_config() | {"bits": "9"}

        with pytest.raises(PortError, match="data bits"):
            await SerialPortDriver().open("loop://", config)


# =============================================================================
# Loopback
# =============================================================================


class TestLoopbackDriver:
    @pytest.mark.anyio
    async def test_echo_and_partial_reads(self):
        """Reads return at most ``size`` bytes, in order."""
        driver = LoopbackPortDriver()
        handle = await driver.open("/dev/ttyLOOP0", default_config())

        await handle.write(b"abcdef")

        assert await handle.read(4) == b"abcd"
        assert await handle.read(4) == b"ef"

    @pytest.mark.anyio
    async def test_reset_discards_pending(self):
        driver = LoopbackPortDriver()
        handle = await driver.open("/dev/ttyLOOP0", default_config())
        await handle.write(b"stale")

        await handle.reset_buffers()
        await handle.write(b"fresh")

        assert await handle.read(64) == b"fresh"
        assert handle.resets == 1

    @pytest.mark.anyio
    async def test_unavailable_address(self):
        driver = LoopbackPortDriver()
        driver.unavailable.add("/dev/ttyGONE")

        with pytest.raises(PortError, match="no such port"):
            await driver.open("/dev/ttyGONE", default_config())

    @pytest.mark.anyio
    async def test_one_handle_per_address(self):
        """A second open of a busy address fails until the first closes."""
        driver = LoopbackPortDriver()
        first = await driver.open("/dev/ttyLOOP0", default_config())

        with pytest.raises(PortError, match="busy"):
            await driver.open("/dev/ttyLOOP0", default_config())

        await first.close()
        await driver.open("/dev/ttyLOOP0", default_config())
        assert len(driver.handles) == 2
        assert len(driver.open_handles) == 1

    @pytest.mark.anyio
    async def test_rejected_parameter(self):
        driver = LoopbackPortDriver()
        driver.rejected_parameters.add("rts")
        handle = await driver.open("/dev/ttyLOOP0", default_config())

        await handle.set_parameter("dtr", "off")
        with pytest.raises(PortError, match="rejected rts=off"):
            await handle.set_parameter("rts", "off")

        assert handle.settings["dtr"] == "off"
        assert handle.settings["rts"] == "on"

    @pytest.mark.anyio
    async def test_disconnect_fails_io(self):
        driver = LoopbackPortDriver()
        handle = await driver.open("/dev/ttyLOOP0", default_config())

        handle.disconnect()

        with pytest.raises(PortError):
            await handle.read(64)
        with pytest.raises(PortError):
            await handle.write(b"x")

    @pytest.mark.anyio
    async def test_close_reads_end_of_stream(self):
        driver = LoopbackPortDriver()
        handle = await driver.open("/dev/ttyLOOP0", default_config())

        await handle.close()

        assert await handle.read(64) == b""


class TestCreateDriver:
    def test_known_drivers(self):
        assert isinstance(create_driver("serial"), SerialPortDriver)
        assert isinstance(create_driver("loopback"), LoopbackPortDriver)

    def test_unknown_driver(self):
        with pytest.raises(ValueError):
            create_driver("usb")
