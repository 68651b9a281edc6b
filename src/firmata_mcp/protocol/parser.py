"""Incoming byte stream parser.

The parser consumes one byte at a time and reassembles complete messages.
It has three modes:

- ``IDLE``: waiting for a command byte.
- ``AWAITING_ARGS``: a multi-byte command was seen; collecting its
  argument bytes.
- ``IN_SYSEX``: collecting a sysex payload until ``END_SYSEX``.

Every byte is checked in this order:

1. ``SYSTEM_RESET`` clears all state and fires the reset handler, whatever
   the current mode.
2. In sysex mode the byte either ends the frame or is buffered. A frame
   that fills the buffer is discarded.
3. While arguments are pending, a data byte (< 0x80) is stored. Arguments
   fill the buffer back to front, so ``args[0]`` holds the last byte
   received.
4. Anything else is classified as a new command.

Parsing never raises on malformed input; anomalies reset the state and the
stream continues.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from .commands import COMMAND_ARG_COUNT, Command, split_command
from .framing import SysexFrame, scan_sysex_block

logger = logging.getLogger(__name__)

DEFAULT_MAX_DATA_BYTES = 64


class ParserMode(Enum):
    IDLE = "idle"
    AWAITING_ARGS = "awaiting_args"
    IN_SYSEX = "in_sysex"


class ParserHandler(Protocol):
    """Receiver for the parser's completed messages."""

    def on_reset(self) -> None: ...

    def on_sysex(self, frame: SysexFrame) -> None: ...

    def on_multibyte(self, command: int, channel: int, args: bytes) -> None: ...

    def on_report_version(self) -> None: ...

    def on_overflow(self, length: int) -> None: ...


@dataclass
class ParserState:
    """In-progress parse context."""

    capacity: int = DEFAULT_MAX_DATA_BYTES
    mode: ParserMode = ParserMode.IDLE
    buffer: bytearray = field(default_factory=bytearray)
    length: int = 0
    command: int = 0
    remaining: int = 0
    channel: int = 0

    def __post_init__(self) -> None:
        if len(self.buffer) != self.capacity:
            self.buffer = bytearray(self.capacity)

    def clear(self) -> None:
        self.mode = ParserMode.IDLE
        self.buffer[:] = bytes(self.capacity)
        self.length = 0
        self.command = 0
        self.remaining = 0
        self.channel = 0

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "length": self.length,
            "command": self.command,
            "remaining": self.remaining,
            "channel": self.channel,
        }


class FrameParser:
    """Byte-wise state machine turning a byte stream into messages.

    Usage::

        parser = FrameParser(handler)
        parser.feed(b"\\x90\\x01\\x00")    # handler.on_multibyte(0x90, 0, ...)
    """

    def __init__(
        self,
        handler: ParserHandler,
        max_data_bytes: int = DEFAULT_MAX_DATA_BYTES,
    ) -> None:
        if max_data_bytes < 2:
            raise ValueError(f"max_data_bytes must be at least 2, got {max_data_bytes}")
        self._handler = handler
        self._max_data_bytes = max_data_bytes
        self._state = ParserState(capacity=max_data_bytes)

    @property
    def state(self) -> ParserState:
        return self._state

    @property
    def max_data_bytes(self) -> int:
        return self._max_data_bytes

    @property
    def is_parsing_message(self) -> bool:
        """True while a sysex frame or command arguments are incomplete."""
        return self._state.mode is not ParserMode.IDLE

    def reset(self) -> None:
        """Abandon any partial message and return to idle."""
        self._state.clear()

    def feed(self, data: Iterable[int]) -> None:
        """Parse every byte of ``data`` in order."""
        for byte in data:
            self.parse(byte)

    def feed_chunk(self, block: bytes) -> None:
        """Parse a block read from the transport in one go.

        While a sysex frame is being collected, leading 4-byte groups of
        plain data are copied into the buffer without per-byte dispatch.
        The result is identical to :meth:`feed`.
        """
        state = self._state
        pos = 0
        if state.mode is ParserMode.IN_SYSEX:
            pos = scan_sysex_block(block, 0, state.length, self._max_data_bytes)
            if pos:
                state.buffer[state.length : state.length + pos] = block[:pos]
                state.length += pos
        for byte in block[pos:]:
            self.parse(byte)

    def parse(self, byte: int) -> None:
        """Advance the state machine by one byte."""
        byte &= 0xFF
        state = self._state

        if byte == Command.SYSTEM_RESET:
            self.reset()
            self._handler.on_reset()
            return

        if state.mode is ParserMode.IN_SYSEX:
            self._parse_sysex_byte(byte)
        elif state.mode is ParserMode.AWAITING_ARGS and state.remaining > 0 and byte < 0x80:
            self._parse_argument(byte)
        else:
            self._parse_command(byte)

    def _parse_sysex_byte(self, byte: int) -> None:
        state = self._state
        if byte == Command.END_SYSEX:
            frame = None
            if state.length > 0:
                frame = SysexFrame.from_buffer(state.buffer[: state.length])
            state.mode = ParserMode.IDLE
            state.length = 0
            if frame is None:
                logger.debug("Ignoring empty sysex frame")
                return
            self._handler.on_sysex(frame)
            return

        state.buffer[state.length] = byte
        state.length += 1
        if state.length == self._max_data_bytes:
            length = state.length
            self.reset()
            self._handler.on_overflow(length)

    def _parse_argument(self, byte: int) -> None:
        state = self._state
        state.remaining -= 1
        state.buffer[state.remaining] = byte
        if state.remaining:
            return
        command = state.command
        args = bytes(state.buffer[: COMMAND_ARG_COUNT[Command(command)]])
        state.mode = ParserMode.IDLE
        state.command = 0
        self._handler.on_multibyte(command, state.channel, args)

    def _parse_command(self, byte: int) -> None:
        state = self._state
        command, channel = split_command(byte)
        if 0x80 <= byte < 0xF0:
            state.channel = channel

        if byte >= 0x80 and state.mode is not ParserMode.IDLE:
            logger.debug(
                "Command 0x%02X interrupted pending 0x%02X", byte, state.command
            )
        state.mode = ParserMode.IDLE
        state.command = 0
        state.remaining = 0

        if command in COMMAND_ARG_COUNT:
            state.mode = ParserMode.AWAITING_ARGS
            state.command = command
            state.remaining = COMMAND_ARG_COUNT[Command(command)]
        elif command == Command.START_SYSEX:
            state.mode = ParserMode.IN_SYSEX
            state.length = 0
        elif command == Command.REPORT_VERSION:
            self._handler.on_report_version()
        else:
            logger.debug("Ignoring byte 0x%02X", byte)
