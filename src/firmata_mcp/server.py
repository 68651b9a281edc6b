"""MCP server entry point for the Firmata engine.

Exposes the engine as tools, resources, and prompts via the Model Context
Protocol using the official Python MCP SDK with stdio transport. An agent
can open a serial link, poll it, inspect pin state and received events,
and send Firmata messages to the peer.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections import deque
from typing import Any

from mcp.server.fastmcp import FastMCP

from .callbacks import Callback
from .config import DEFAULT_BAUDRATE, load_engine_config, load_serial_config
from .engine import FirmataEngine
from .models.pins import PinMode, mode_name
from .protocol.commands import SysexCommand
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

MAX_EVENTS = 200
DEFAULT_FIRMWARE_NAME = "firmata-mcp"

mcp = FastMCP(
    "firmata",
    instructions="MCP server driving a Firmata protocol engine over a serial link",
)

# Global connection state
_connection: SerialConnection | None = None
_engine: FirmataEngine | None = None
_events: deque[dict[str, Any]] = deque(maxlen=MAX_EVENTS)
_event_count = 0  # total recorded, never reset


def _get_engine() -> FirmataEngine:
    """Get the active engine, raising if not connected."""
    if _engine is None or _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to a serial port. Use the 'connect' tool first."
        )
    return _engine


def _record(kind: str, **data: Any) -> None:
    global _event_count
    _event_count += 1
    event = {"time": round(time.time(), 3), "event": kind}
    event.update(data)
    _events.append(event)


def _sysex_name(command: int) -> str:
    try:
        return SysexCommand(command).name
    except ValueError:
        return f"0x{command:02X}"


def _register_recorders(engine: FirmataEngine) -> None:
    """Attach handlers that log every received message as an event."""
    engine.attach(
        Callback.DIGITAL_MESSAGE,
        lambda port, value: _record("digital_message", port=port, value=value),
    )
    engine.attach(
        Callback.REPORT_ANALOG,
        lambda channel, enabled: _record("report_analog", channel=channel, enabled=bool(enabled)),
    )
    engine.attach(
        Callback.REPORT_DIGITAL,
        lambda port, enabled: _record("report_digital", port=port, enabled=bool(enabled)),
    )
    engine.attach(
        Callback.PIN_MODE,
        lambda pin, mode: _record("pin_mode", pin=pin, mode=mode_name(mode)),
    )
    engine.attach(
        Callback.PIN_VALUE,
        lambda pin, value: _record("pin_value", pin=pin, value=value),
    )
    engine.attach(Callback.SYSTEM_RESET, lambda: _record("system_reset"))
    engine.attach(Callback.STRING_DATA, lambda text: _record("string", text=text))
    engine.attach(
        Callback.SYSEX,
        lambda command, length, payload: _record(
            "sysex",
            command=_sysex_name(command),
            length=length,
            payload=payload.hex(" "),
        ),
    )


def _parse_mode(mode: str | int) -> int:
    if isinstance(mode, int):
        return mode
    try:
        return PinMode[mode.strip().upper()]
    except KeyError:
        raise ValueError(
            f"Unknown pin mode '{mode}'. Valid: {[m.name.lower() for m in PinMode]}"
        ) from None


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    port: str = "",
    baudrate: int = DEFAULT_BAUDRATE,
    firmware_name: str = DEFAULT_FIRMWARE_NAME,
    firmware_major: int = 1,
    firmware_minor: int = 0,
) -> dict[str, Any]:
    """Open a serial link and start a Firmata engine on it.

    The engine announces the protocol version and firmware identity to the
    peer as soon as the link is open.

    Args:
        port: Device path or pyserial URL (defaults to FIRMATA_PORT).
        baudrate: Link speed (default 57600).
        firmware_name: Name reported for REPORT_FIRMWARE requests.
        firmware_major: Firmware major version.
        firmware_minor: Firmware minor version.
    """
    global _connection, _engine
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _connection.info.port,
        }

    # Settle every setting before the port is touched.
    engine_config = load_engine_config()
    serial_config = load_serial_config(port or None)
    serial_config.baudrate = baudrate
    serial_config.validate()

    connection = SerialConnection.from_config(serial_config)
    info = connection.open()
    _connection = connection
    try:
        _engine = FirmataEngine(_connection, engine_config)
        _register_recorders(_engine)
        _engine.set_firmware(firmware_name, firmware_major, firmware_minor)
        _engine.begin()
    except Exception:
        _connection.close()
        _connection = None
        _engine = None
        raise

    return {
        "connected": True,
        "port": info.port,
        "baudrate": info.baudrate,
        "firmware": _engine.firmware.to_dict(),
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial link and discard the engine."""
    global _connection, _engine
    if _connection is not None:
        _connection.close()
    _connection = None
    _engine = None
    return {"disconnected": True}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Report engine state: versions, parser mode, buffer size, and handlers."""
    engine = _get_engine()
    status = engine.status()
    status["port"] = _connection.info.port if _connection else None
    status["pending_bytes"] = engine.available()
    status["event_count"] = len(_events)
    return status


# ─── INPUT TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def poll(max_reads: int = 1000) -> dict[str, Any]:
    """Process bytes received from the peer and return the resulting events.

    Args:
        max_reads: Maximum number of transport reads this call.
    """
    engine = _get_engine()
    before = _event_count
    consumed = engine.poll(max_reads=max_reads)
    fresh = min(_event_count - before, len(_events))
    new_events = list(_events)[-fresh:] if fresh else []
    return {
        "bytes_parsed": consumed,
        "events": new_events,
        "parsing_message": engine.is_parsing_message,
    }


@mcp.tool()
def get_events(limit: int = 50, clear: bool = False) -> dict[str, Any]:
    """Return the most recent received events.

    Args:
        limit: Maximum number of events to return.
        clear: Empty the event log afterwards.
    """
    events = list(_events)[-limit:] if limit > 0 else []
    if clear:
        _events.clear()
    return {"events": events, "count": len(events)}


@mcp.tool()
def reset() -> dict[str, Any]:
    """Run a local system reset: drop partial messages and fire reset handlers."""
    engine = _get_engine()
    engine.system_reset()
    return {"reset": True}


# ─── PIN TOOLS ───────────────────────────────────────────────────────

@mcp.tool()
def get_pins() -> dict[str, Any]:
    """List every pin with its mode and last recorded state."""
    engine = _get_engine()
    return {"pins": engine.pins.snapshot()}


@mcp.tool()
def set_pin_mode(pin: int, mode: str) -> dict[str, Any]:
    """Set a pin's mode in the local pin table.

    Pins in 'ignore' mode are locked and keep their current mode.

    Args:
        pin: Pin index.
        mode: Mode name (input, output, analog, pwm, servo, ...).
    """
    engine = _get_engine()
    engine.set_pin_mode(pin, _parse_mode(mode))
    return {"pin": pin, "mode": mode_name(engine.get_pin_mode(pin))}


@mcp.tool()
def set_pin_state(pin: int, value: int) -> dict[str, Any]:
    """Record a pin's current value in the local pin table."""
    engine = _get_engine()
    engine.set_pin_state(pin, value)
    return {"pin": pin, "state": engine.get_pin_state(pin)}


# ─── OUTPUT TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def send_analog(pin: int, value: int) -> dict[str, Any]:
    """Report an analog value to the peer.

    Pins 0-15 use the compact analog message; higher pins use EXTENDED_ANALOG.

    Args:
        pin: Analog pin number.
        value: 14-bit value (0-16383).
    """
    if not 0 <= value <= 0x3FFF:
        return {"error": "Analog value must be 0-16383"}
    _get_engine().send_analog(pin, value)
    return {"sent": True, "pin": pin, "value": value}


@mcp.tool()
def send_digital_port(port: int, value: int) -> dict[str, Any]:
    """Report a digital port bitmap to the peer.

    Args:
        port: Port number 0-15 (8 pins per port).
        value: Pin bitmap (bit n = pin port*8+n).
    """
    if not 0 <= port <= 15:
        return {"error": "Port must be 0-15"}
    _get_engine().send_digital_port(port, value)
    return {"sent": True, "port": port, "value": value}


@mcp.tool()
def send_string(text: str) -> dict[str, Any]:
    """Send a STRING_DATA message to the peer."""
    _get_engine().send_string(text)
    return {"sent": True, "length": len(text)}


@mcp.tool()
def send_sysex(command: int, data: list[int] | None = None) -> dict[str, Any]:
    """Send a sysex message; each data byte is split into two 7-bit bytes.

    Args:
        command: Sysex sub-command (0-127).
        data: Data bytes (0-255).
    """
    data = data or []
    if any(not 0 <= b <= 0xFF for b in data):
        return {"error": "Data bytes must be 0-255"}
    _get_engine().send_sysex(command, bytes(data))
    return {"sent": True, "command": _sysex_name(command), "length": len(data)}


@mcp.tool()
def set_firmware(name: str, major: int, minor: int, announce: bool = True) -> dict[str, Any]:
    """Change the firmware identity reported to the peer.

    Args:
        name: Firmware name; an empty name suppresses firmware reports.
        major: Major version.
        minor: Minor version.
        announce: Send the new identity to the peer right away.
    """
    engine = _get_engine()
    engine.set_firmware(name, major, minor)
    if announce:
        engine.print_firmware_version()
    return {"firmware": engine.firmware.to_dict()}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("firmata://pins")
def resource_pins() -> str:
    """Current pin table as JSON."""
    if _engine is None:
        return json.dumps({"pins": []})
    return json.dumps({"pins": _engine.pins.snapshot()})


@mcp.resource("firmata://events")
def resource_events() -> str:
    """Recently received events as JSON."""
    return json.dumps({"events": list(_events)})


@mcp.resource("firmata://catalog/pin-modes")
def resource_pin_modes() -> str:
    """Pin mode names and their wire values."""
    return json.dumps({m.name.lower(): int(m) for m in PinMode})


@mcp.resource("firmata://catalog/sysex")
def resource_sysex_commands() -> str:
    """Sysex sub-command names and their wire values."""
    return json.dumps({c.name: int(c) for c in SysexCommand})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def diagnose_link(port: str) -> str:
    """Guide the AI through checking that a Firmata peer is talking.

    Args:
        port: Serial port the peer is attached to.
    """
    return f"""Connect to {port} with the connect tool and check the link.
Consider:
- Poll a few times and look for string, sysex, or digital events
- A 'Discarding input message' string means the peer sent a sysex frame
  larger than the buffer
- Use get_status to see whether the parser is stuck mid-message
- Use reset to drop a partial message

Report what the peer sent and whether it looks healthy."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    level = os.getenv("FIRMATA_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO))
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
