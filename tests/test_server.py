"""Tests for the MCP server tools."""

from __future__ import annotations

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

from firmata_mcp.protocol.commands import build_string
from firmata_mcp.transport.memory import MemoryTransport
from firmata_mcp.transport.serial_connection import PortInfo


class FakeConnection(MemoryTransport):
    """Stands in for SerialConnection without touching a port."""

    def __init__(self, port: str = "fake", baudrate: int = 57600) -> None:
        super().__init__()
        self.info = PortInfo(port=port, baudrate=baudrate)
        self.connected = False

    @classmethod
    def from_config(cls, config):
        return cls(config.port, config.baudrate)

    def open(self) -> PortInfo:
        self.connected = True
        return self.info

    def close(self) -> None:
        self.connected = False


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch.dict(sys.modules, {}):
        with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
            sys.modules.pop("firmata_mcp.server", None)
            import firmata_mcp.server as server_mod

    return server_mod


@pytest.fixture
def server(monkeypatch):
    for name in ("FIRMATA_INGESTION", "FIRMATA_LARGE_MEMORY", "FIRMATA_MAX_DATA_BYTES"):
        monkeypatch.delenv(name, raising=False)
    server_mod = _get_server_module()
    monkeypatch.setattr(server_mod, "SerialConnection", FakeConnection)
    server_mod._events.clear()
    yield server_mod
    server_mod.disconnect()


def test_tools_require_connection(server):
    with pytest.raises(RuntimeError):
        server.get_status()
    with pytest.raises(RuntimeError):
        server.send_analog(1, 2)


def test_connect_announces_versions(server):
    result = server.connect(port="fake0", firmware_name="fw")
    assert result["connected"] is True
    assert result["port"] == "fake0"
    assert result["firmware"]["name"] == "fw"
    sent = server._connection.take_sent()
    assert sent.startswith(bytes([0xF9, 2, 7, 0xF0, 0x79, 1, 0]))

    again = server.connect(port="fake0")
    assert again["message"] == "Already connected"


def test_connect_requires_port(server, monkeypatch):
    monkeypatch.delenv("FIRMATA_PORT", raising=False)
    with pytest.raises(ValueError):
        server.connect()


def test_poll_records_events(server):
    server.connect(port="fake0")
    server._connection.inject(
        bytes([0x90, 0x05, 0x00, 0xF4, 3, 1, 0xE2, 0x10, 0x00]) + build_string("hey")
    )
    result = server.poll()
    kinds = [e["event"] for e in result["events"]]
    assert kinds == ["digital_message", "pin_mode", "sysex", "string"]
    assert result["events"][0]["value"] == 5
    assert result["events"][1]["mode"] == "output"
    assert result["events"][2]["command"] == "EXTENDED_ANALOG"
    assert result["events"][3]["text"] == "hey"
    assert result["parsing_message"] is False

    pins = server.get_pins()["pins"]
    assert pins[3]["mode"] == "output"

    events = server.get_events(limit=2, clear=True)
    assert events["count"] == 2
    assert server.get_events()["count"] == 0


def test_poll_returns_events_once_log_is_full(server):
    """New events still come back after the log reaches its size limit."""
    server.connect(port="fake0")
    for i in range(server.MAX_EVENTS):
        server._record("filler", index=i)
    assert len(server._events) == server.MAX_EVENTS

    server._connection.inject(build_string("hello") + bytes([0x90, 0x01, 0x00]))
    result = server.poll()
    assert [e["event"] for e in result["events"]] == ["string", "digital_message"]
    assert result["events"][0]["text"] == "hello"
    assert len(server._events) == server.MAX_EVENTS

    assert server.poll()["events"] == []


def test_connect_with_bad_engine_config_leaves_port_closed(server, monkeypatch):
    monkeypatch.setenv("FIRMATA_INGESTION", "bogus")
    with pytest.raises(ValueError):
        server.connect(port="fake0")
    assert server._connection is None
    assert server._engine is None

    monkeypatch.delenv("FIRMATA_INGESTION")
    result = server.connect(port="fake0")
    assert "message" not in result
    assert server.get_status()["port"] == "fake0"


def test_connect_closes_port_when_engine_setup_fails(server, monkeypatch):
    opened = []

    class TrackingConnection(FakeConnection):
        def open(self):
            opened.append(self)
            return super().open()

    def broken_engine(*args, **kwargs):
        raise OSError("write failed")

    monkeypatch.setattr(server, "SerialConnection", TrackingConnection)
    monkeypatch.setattr(server, "FirmataEngine", broken_engine)
    with pytest.raises(OSError):
        server.connect(port="fake0")
    assert opened[0].connected is False
    assert server._connection is None
    with pytest.raises(RuntimeError):
        server.get_status()


def test_poll_replies_to_version_request(server):
    server.connect(port="fake0")
    server._connection.take_sent()
    server._connection.inject(bytes([0xF9]))
    server.poll()
    assert server._connection.take_sent() == bytes([0xF9, 2, 7])


def test_output_tools(server):
    server.connect(port="fake0")
    server._connection.take_sent()

    assert server.send_analog(2, 300)["sent"] is True
    assert server._connection.take_sent() == bytes([0xE2, 300 & 0x7F, 300 >> 7])

    assert server.send_digital_port(0, 3)["sent"] is True
    assert server._connection.take_sent() == bytes([0x90, 3, 0])

    assert server.send_string("ok")["length"] == 2
    assert server._connection.take_sent() == build_string("ok")

    result = server.send_sysex(0x6B, [])
    assert result["command"] == "CAPABILITY_QUERY"
    assert server._connection.take_sent() == bytes([0xF0, 0x6B, 0xF7])


def test_output_tool_validation(server):
    server.connect(port="fake0")
    assert "error" in server.send_analog(1, 20000)
    assert "error" in server.send_digital_port(16, 0)
    assert "error" in server.send_sysex(0x10, [300])


def test_pin_tools(server):
    server.connect(port="fake0")
    assert server.set_pin_mode(4, "pwm") == {"pin": 4, "mode": "pwm"}
    assert server.set_pin_state(4, 128) == {"pin": 4, "state": 128}
    with pytest.raises(ValueError):
        server.set_pin_mode(4, "laser")
    server.set_pin_mode(5, "ignore")
    assert server.set_pin_mode(5, "output")["mode"] == "ignore"


def test_set_firmware_and_reset(server):
    server.connect(port="fake0")
    server._connection.take_sent()
    result = server.set_firmware("blink", 2, 3)
    assert result["firmware"]["version"] == "2.3"
    assert server._connection.take_sent().startswith(bytes([0xF0, 0x79, 2, 3]))

    server._connection.inject(bytes([0xF0, 0x10]))
    server.poll()
    assert server.get_status()["parser"]["mode"] == "in_sysex"
    assert server.reset() == {"reset": True}
    assert server.get_status()["parser"]["mode"] == "idle"
    assert server.get_events()["events"][-1]["event"] == "system_reset"


def test_resources(server):
    assert json.loads(server.resource_pins()) == {"pins": []}
    server.connect(port="fake0")
    assert len(json.loads(server.resource_pins())["pins"]) == 20
    assert json.loads(server.resource_pin_modes())["ignore"] == 0x7F
    assert json.loads(server.resource_sysex_commands())["STRING_DATA"] == 0x71
    assert json.loads(server.resource_events()) == {"events": []}


def test_disconnect(server):
    server.connect(port="fake0")
    assert server.disconnect() == {"disconnected": True}
    with pytest.raises(RuntimeError):
        server.get_pins()
