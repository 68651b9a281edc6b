"""The Firmata protocol engine.

One :class:`FirmataEngine` owns the parser state, the pin table and the
callback registry for a single peer relationship. It reads bytes from its
transport when polled, dispatches completed messages to registered
handlers, and writes outgoing messages back to the same transport.

Usage::

    engine = FirmataEngine(SerialConnection("/dev/ttyACM0"))
    engine.set_firmware("blink.py", 1, 0)
    engine.attach(Callback.DIGITAL_MESSAGE, on_digital)
    engine.begin()
    while True:
        engine.poll()

The engine is not thread-safe by default. Set ``thread_safe=True`` in the
config to serialise every public call through one lock.
"""

from __future__ import annotations

import contextlib
import functools
import logging
import threading
from collections.abc import Callable, Iterable

from .callbacks import Callback, CallbackRegistry, Handler
from .config import INGESTION_CHUNKED, EngineConfig
from .dispatcher import SysexDispatcher
from .models.firmware import PROTOCOL_VERSION, FirmwareIdentity
from .models.pins import PinTable
from .protocol import commands
from .protocol.encoding import decode_packed14, decode_packed32, decode_packed64
from .protocol.framing import SysexFrame
from .protocol.parser import FrameParser
from .transport.base import Transport

logger = logging.getLogger(__name__)

OVERFLOW_MESSAGE = "Discarding input message, out of buffer"


def _serialized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class FirmataEngine:
    """Bidirectional Firmata protocol engine.

    Args:
        transport: Byte channel to read from and write to. May be attached
            later with :meth:`begin`.
        config: Buffer sizing and ingestion strategy.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._config.validate()
        self._transport = transport
        self._lock = threading.RLock() if self._config.thread_safe else contextlib.nullcontext()
        self._resetting = False
        self._firmware = FirmwareIdentity()

        self._callbacks = CallbackRegistry()
        self._pins = PinTable(self._config.total_pins, on_mode_change=self._on_pin_mode)
        self._dispatcher = SysexDispatcher(
            self._callbacks, self._pins, self.print_firmware_version
        )
        self._parser = FrameParser(self, max_data_bytes=self._config.max_data_bytes)

    # ─── PROPERTIES ──────────────────────────────────────────────────

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def pins(self) -> PinTable:
        return self._pins

    @property
    def callbacks(self) -> CallbackRegistry:
        return self._callbacks

    @property
    def parser(self) -> FrameParser:
        return self._parser

    @property
    def firmware(self) -> FirmwareIdentity:
        return self._firmware

    @property
    def is_parsing_message(self) -> bool:
        return self._parser.is_parsing_message

    @property
    def is_resetting(self) -> bool:
        """True while the system reset handler is running."""
        return self._resetting

    # ─── SETUP ───────────────────────────────────────────────────────

    @_serialized
    def begin(self, transport: Transport | None = None) -> None:
        """Attach a transport and announce the protocol and firmware versions."""
        if transport is not None:
            self._transport = transport
        self.print_version()
        self.print_firmware_version()

    @_serialized
    def set_firmware(self, name: str, major: int, minor: int) -> None:
        """Set the name and version reported for REPORT_FIRMWARE."""
        self._firmware = FirmwareIdentity(name=name, major=major, minor=minor)

    # ─── INPUT ───────────────────────────────────────────────────────

    def available(self) -> int:
        if self._transport is None:
            return 0
        return self._transport.available()

    @_serialized
    def process_input(self) -> int:
        """Consume pending input once and return the number of bytes parsed.

        Byte-wise ingestion reads a single byte; chunked ingestion reads up
        to ``chunk_size`` bytes. Returns 0 when nothing is pending.
        """
        if self._transport is None or not self._transport.available():
            return 0
        if self._config.ingestion == INGESTION_CHUNKED:
            block = self._transport.read(self._config.chunk_size)
            self._parser.feed_chunk(block)
        else:
            block = self._transport.read(1)
            self._parser.feed(block)
        return len(block)

    def poll(self, max_reads: int | None = None) -> int:
        """Call :meth:`process_input` until the transport is drained.

        Args:
            max_reads: Upper bound on the number of reads this call.

        Returns:
            Total bytes parsed.
        """
        total = 0
        reads = 0
        while max_reads is None or reads < max_reads:
            consumed = self.process_input()
            if not consumed:
                break
            total += consumed
            reads += 1
        return total

    @_serialized
    def parse(self, byte: int) -> None:
        self._parser.parse(byte)

    @_serialized
    def feed(self, data: Iterable[int]) -> None:
        self._parser.feed(data)

    @_serialized
    def reset_parser(self) -> None:
        """Drop any partially received message without running reset handlers."""
        self._parser.reset()

    @_serialized
    def system_reset(self) -> None:
        """Clear parser state and run the SYSTEM_RESET handler.

        Transports call this when they detect a fresh connection.
        """
        self._resetting = True
        try:
            self._parser.reset()
            self._callbacks.invoke(Callback.SYSTEM_RESET)
        finally:
            self._resetting = False

    # Parser hooks

    def on_reset(self) -> None:
        self.system_reset()

    def on_sysex(self, frame: SysexFrame) -> None:
        logger.debug("Received %r", frame)
        self._dispatcher.dispatch(frame)

    def on_multibyte(self, command: int, channel: int, args: bytes) -> None:
        self._dispatcher.dispatch_multibyte(command, channel, args)

    def on_report_version(self) -> None:
        self.print_version()

    def on_overflow(self, length: int) -> None:
        logger.warning("%s (%d bytes)", OVERFLOW_MESSAGE, length)
        if self._config.echo_diagnostics:
            self.send_string(OVERFLOW_MESSAGE)

    # ─── OUTPUT ──────────────────────────────────────────────────────

    @_serialized
    def write(self, data: bytes) -> int:
        """Write raw bytes to the transport.

        Without a transport the bytes are dropped and 0 is returned.
        """
        if self._transport is None:
            logger.debug("No transport; dropping %d bytes", len(data))
            return 0
        return self._transport.write(data)

    def _write_sysex(self, message: bytes) -> None:
        if self.write(message) and self._transport is not None:
            self._transport.flush()

    def print_version(self) -> None:
        """Send the protocol version (REPORT_VERSION, major, minor)."""
        self.write(commands.build_version(PROTOCOL_VERSION.major, PROTOCOL_VERSION.minor))

    def print_firmware_version(self) -> None:
        """Send the firmware identity, if one has been configured."""
        if not self._firmware.configured:
            logger.debug("Firmware identity not set; report suppressed")
            return
        self._write_sysex(commands.build_firmware_report(self._firmware))

    def send_analog(self, pin: int, value: int) -> None:
        message = commands.build_analog(pin, value)
        if pin <= commands.MAX_CHANNEL:
            self.write(message)
        else:
            self._write_sysex(message)

    def send_digital_port(self, port: int, value: int) -> None:
        self.write(commands.build_digital_port(port, value))

    def send_sysex(self, command: int, data: Iterable[int] = b"") -> None:
        """Send a sysex message with each data byte split into 7-bit pairs."""
        self._write_sysex(commands.build_sysex(command, data))

    def send_string(self, text: str) -> None:
        self._write_sysex(commands.build_string(text))

    def send_error(self, text: str, code: int) -> None:
        """Send ``text`` followed by ``code`` in hex as a STRING_DATA message."""
        logger.debug("%s%x", text, code)
        self._write_sysex(commands.build_error_string(text, code))

    def send_packed_uint14(self, value: int) -> None:
        self.write(commands.build_packed14(value))

    def send_packed_uint32(self, value: int) -> None:
        self.write(commands.build_packed32(value))

    def send_packed_uint64(self, value: int) -> None:
        self.write(commands.build_packed64(value))

    @staticmethod
    def decode_packed_uint14(data: bytes) -> int:
        return decode_packed14(data)

    @staticmethod
    def decode_packed_uint32(data: bytes) -> int:
        return decode_packed32(data)

    @staticmethod
    def decode_packed_uint64(data: bytes) -> int:
        return decode_packed64(data)

    # ─── CALLBACKS ───────────────────────────────────────────────────

    @_serialized
    def attach(self, category: Callback | int | str, handler: Handler) -> None:
        """Register a handler for a category (or the command id it serves)."""
        self._callbacks.attach(category, handler)

    @_serialized
    def detach(self, category: Callback | int | str) -> None:
        self._callbacks.detach(category)

    def attach_delay_task(self, handler: Callable[[int], None]) -> None:
        self.attach(Callback.DELAY_TASK, handler)

    def delay_task(self, delay_ms: int) -> None:
        """Ask the attached scheduler to delay the current task."""
        self._callbacks.invoke(Callback.DELAY_TASK, delay_ms)

    # ─── PINS ────────────────────────────────────────────────────────

    def _on_pin_mode(self, pin: int, mode: int) -> None:
        self._callbacks.invoke(Callback.PIN_MODE, pin, mode)

    def get_pin_mode(self, pin: int) -> int:
        return self._pins.get_mode(pin)

    @_serialized
    def set_pin_mode(self, pin: int, mode: int) -> None:
        self._pins.set_mode(pin, mode)

    def get_pin_state(self, pin: int) -> int:
        return self._pins.get_state(pin)

    @_serialized
    def set_pin_state(self, pin: int, value: int) -> None:
        self._pins.set_state(pin, value)

    def status(self) -> dict:
        return {
            "protocol_version": str(PROTOCOL_VERSION),
            "firmware": self._firmware.to_dict(),
            "parser": self._parser.state.to_dict(),
            "ingestion": self._config.ingestion,
            "max_data_bytes": self._config.max_data_bytes,
            "total_pins": self._pins.total_pins,
            "callbacks": self._callbacks.attached(),
            "transport": type(self._transport).__name__ if self._transport else None,
        }
