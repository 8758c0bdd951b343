"""Unit tests for Event wire serialization."""

import json

from serial_monitor.configuration import default_descriptor
from serial_monitor.protocol.events import Event, EventType


class TestEventWireFormat:
    """Events must serialize to the exact compact wire form."""

    def test_hello(self):
        """hello carries the negotiated protocol version."""
        assert Event.hello(1).to_json() == (
            '{"eventType":"hello","message":"OK","protocolVersion":1}'
        )

    def test_plain_success(self):
        """Success events have no error key."""
        assert Event.ok(EventType.CLOSE).to_json() == '{"eventType":"close","message":"OK"}'
        assert Event.ok("quit").to_json() == '{"eventType":"quit","message":"OK"}'

    def test_failure(self):
        """Failure events carry error: true and the message."""
        event = Event.failure(EventType.CONFIGURE, "invalid value for parameter baudrate: 7")

        assert event.to_json() == (
            '{"eventType":"configure","error":true,'
            '"message":"invalid value for parameter baudrate: 7"}'
        )
        assert event.is_error() is True

    def test_port_closed(self):
        """port_closed is always an error event."""
        event = Event.port_closed("lost TCP/IP connection with the client!")

        assert json.loads(event.to_json()) == {
            "eventType": "port_closed",
            "error": True,
            "message": "lost TCP/IP connection with the client!",
        }

    def test_command_error(self):
        """command_error reports unknown or malformed commands."""
        data = json.loads(Event.command_error("Command FOO not supported").to_json())

        assert data["eventType"] == "command_error"
        assert data["error"] is True

    def test_success_is_not_error(self):
        """is_error() is False for success events."""
        assert Event.hello(1).is_error() is False


class TestDescribeEvent:
    """Test the DESCRIBE payload."""

    def test_describe_structure(self):
        """port_description should mirror the descriptor."""
        data = json.loads(Event.describe(default_descriptor()).to_json())

        assert data["eventType"] == "describe"
        assert data["message"] == "OK"
        description = data["port_description"]
        assert description["protocol"] == "serial"
        assert description["configuration_parameters"]["baudrate"] == {
            "label": "Baudrate",
            "type": "enum",
            "values": description["configuration_parameters"]["baudrate"]["values"],
            "selected": "9600",
        }

    def test_describe_parameter_order(self):
        """Parameters should serialize in declaration order."""
        data = json.loads(Event.describe(default_descriptor()).to_json())

        assert list(data["port_description"]["configuration_parameters"]) == [
            "baudrate",
            "parity",
            "bits",
            "stop_bits",
            "rts",
            "dtr",
        ]

    def test_unicode_message(self):
        """Non-ASCII text should survive serialization."""
        event = Event.failure(EventType.OPEN, "no such port: /dev/ttyÜSB0")

        assert json.loads(event.to_json())["message"] == "no such port: /dev/ttyÜSB0"
