"""Command constants and outgoing message builders.

Command bytes have the high bit set (``0x80-0xFF``). The ``0x80-0xEF``
commands carry a 4-bit channel in their low nibble; the ``0xF0-0xFF``
commands are used as-is. Sysex sub-commands are the first byte inside a
``START_SYSEX ... END_SYSEX`` envelope and are always below ``0x80``.

Builders return ``bytes`` and perform no I/O; the engine writes them to
its transport.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import IntEnum

from ..models.firmware import PROTOCOL_VERSION, FirmwareIdentity
from .encoding import (
    encode_7bit_pairs,
    encode_packed14,
    encode_packed32,
    encode_packed64,
    split_7bit,
)

# Commands below this value carry a channel nibble
CHANNEL_COMMAND_LIMIT = 0xF0
MAX_CHANNEL = 0x0F


class Command(IntEnum):
    """Top-level command bytes."""

    DIGITAL_MESSAGE = 0x90
    REPORT_ANALOG = 0xC0
    REPORT_DIGITAL = 0xD0
    ANALOG_MESSAGE = 0xE0
    START_SYSEX = 0xF0
    SET_PIN_MODE = 0xF4
    SET_DIGITAL_PIN_VALUE = 0xF5
    END_SYSEX = 0xF7
    REPORT_VERSION = 0xF9
    SYSTEM_RESET = 0xFF


class SysexCommand(IntEnum):
    """Sysex sub-command identifiers (first payload byte)."""

    SERIAL_MESSAGE = 0x60
    ENCODER_DATA = 0x61
    ACCELSTEPPER_DATA = 0x62
    REPORT_DIGITAL_PIN = 0x63
    EXTENDED_REPORT_ANALOG = 0x64
    REPORT_FEATURES = 0x65
    SPI_DATA = 0x68
    ANALOG_MAPPING_QUERY = 0x69
    ANALOG_MAPPING_RESPONSE = 0x6A
    CAPABILITY_QUERY = 0x6B
    CAPABILITY_RESPONSE = 0x6C
    PIN_STATE_QUERY = 0x6D
    PIN_STATE_RESPONSE = 0x6E
    EXTENDED_ANALOG = 0x6F
    SERVO_CONFIG = 0x70
    STRING_DATA = 0x71
    STEPPER_DATA = 0x72
    ONEWIRE_DATA = 0x73
    DHTSENSOR_DATA = 0x74
    SHIFT_DATA = 0x75
    I2C_REQUEST = 0x76
    I2C_REPLY = 0x77
    I2C_CONFIG = 0x78
    REPORT_FIRMWARE = 0x79
    SAMPLING_INTERVAL = 0x7A
    SCHEDULER_DATA = 0x7B
    ANALOG_CONFIG = 0x7C
    FREQUENCY_COMMAND = 0x7D
    SYSEX_NON_REALTIME = 0x7E
    SYSEX_REALTIME = 0x7F


# Number of argument bytes that follow each multi-byte command
COMMAND_ARG_COUNT: dict[Command, int] = {
    Command.DIGITAL_MESSAGE: 2,
    Command.ANALOG_MESSAGE: 2,
    Command.SET_PIN_MODE: 2,
    Command.SET_DIGITAL_PIN_VALUE: 2,
    Command.REPORT_ANALOG: 1,
    Command.REPORT_DIGITAL: 1,
}


def split_command(byte: int) -> tuple[int, int]:
    """Split a command byte into ``(command, channel)``.

    Bytes in the ``0xF0-0xFF`` range have no channel and return 0 for it.
    """
    if byte < CHANNEL_COMMAND_LIMIT:
        return byte & 0xF0, byte & 0x0F
    return byte, 0


def build_version(major: int = PROTOCOL_VERSION.major,
                  minor: int = PROTOCOL_VERSION.minor) -> bytes:
    """Build the 3-byte REPORT_VERSION reply."""
    return bytes([Command.REPORT_VERSION, major & 0x7F, minor & 0x7F])


def build_sysex(command: int, data: Iterable[int] = b"") -> bytes:
    """Build a sysex message whose data bytes are sent as 7-bit pairs.

    Args:
        command: Sysex sub-command (0x00-0x7F).
        data: Byte values (up to 14 bits); each is split into an ``(lsb, msb)`` pair.
    """
    if not 0 <= command <= 0x7F:
        raise ValueError(f"Sysex command must be 0x00-0x7F, got {command:#x}")
    return (
        bytes([Command.START_SYSEX, command])
        + encode_7bit_pairs(data)
        + bytes([Command.END_SYSEX])
    )


def build_raw_sysex(command: int, payload: bytes = b"") -> bytes:
    """Build a sysex message whose payload is already 7-bit clean."""
    if not 0 <= command <= 0x7F:
        raise ValueError(f"Sysex command must be 0x00-0x7F, got {command:#x}")
    if any(b & 0x80 for b in payload):
        raise ValueError("Raw sysex payload bytes must be below 0x80")
    return bytes([Command.START_SYSEX, command]) + payload + bytes([Command.END_SYSEX])


def build_firmware_report(identity: FirmwareIdentity) -> bytes:
    """Build a REPORT_FIRMWARE reply: major, minor, then the name as 7-bit pairs."""
    body = bytes([identity.major & 0x7F, identity.minor & 0x7F])
    body += encode_7bit_pairs(ord(c) for c in identity.name)
    return build_raw_sysex(SysexCommand.REPORT_FIRMWARE, body)


def build_analog(pin: int, value: int) -> bytes:
    """Build an analog value message.

    Pins 0-15 use the compact ANALOG_MESSAGE with the pin in the channel
    nibble. Higher pins need an EXTENDED_ANALOG sysex carrying the full
    pin number.
    """
    if pin <= MAX_CHANNEL:
        return bytes([Command.ANALOG_MESSAGE | (pin & 0x0F), *split_7bit(value)])
    body = bytes([pin & 0x7F, *split_7bit(value)])
    return build_raw_sysex(SysexCommand.EXTENDED_ANALOG, body)


def build_digital_port(port: int, value: int) -> bytes:
    """Build a DIGITAL_MESSAGE carrying a port bitmap.

    Args:
        port: Port number 0-15 (port 0 = pins 0-7, port 1 = pins 8-15, ...).
        value: Bitmap of pin values, one bit per pin.
    """
    return bytes([Command.DIGITAL_MESSAGE | (port & 0x0F), *split_7bit(value)])


def build_string(text: str) -> bytes:
    """Build a STRING_DATA sysex with every character split into 7-bit pairs."""
    return build_sysex(SysexCommand.STRING_DATA, (ord(c) for c in text))


def build_error_string(text: str, code: int) -> bytes:
    """Build a STRING_DATA sysex of ``text`` followed by ``code`` in hex."""
    return build_string(f"{text}{code & 0xFFFFFFFF:x}")


def build_pin_mode(pin: int, mode: int) -> bytes:
    """Build a SET_PIN_MODE command (host to device)."""
    return bytes([Command.SET_PIN_MODE, pin & 0x7F, mode & 0x7F])


def build_report_analog(channel: int, enabled: bool) -> bytes:
    return bytes([Command.REPORT_ANALOG | (channel & 0x0F), 1 if enabled else 0])


def build_report_digital(port: int, enabled: bool) -> bytes:
    return bytes([Command.REPORT_DIGITAL | (port & 0x0F), 1 if enabled else 0])


def build_packed14(value: int) -> bytes:
    return encode_packed14(value)


def build_packed32(value: int) -> bytes:
    return encode_packed32(value)


def build_packed64(value: int) -> bytes:
    return encode_packed64(value)
