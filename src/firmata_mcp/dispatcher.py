"""Routes completed messages to the callback registry.

Sysex frames for REPORT_FIRMWARE and STRING_DATA are handled here; every
other sysex sub-command goes to the generic SYSEX handler untouched.
Compact ANALOG_MESSAGE writes are repacked as EXTENDED_ANALOG frames so a
single handler serves both analog paths.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .callbacks import Callback, CallbackRegistry
from .models.pins import PinTable
from .protocol.commands import Command, SysexCommand
from .protocol.framing import SysexFrame, decode_string

logger = logging.getLogger(__name__)


class SysexDispatcher:
    """Dispatch sysex frames and completed multi-byte commands.

    Args:
        callbacks: Registry holding the application's handlers.
        pins: Pin table updated by SET_PIN_MODE.
        send_firmware: Called for a REPORT_FIRMWARE request.
    """

    def __init__(
        self,
        callbacks: CallbackRegistry,
        pins: PinTable,
        send_firmware: Callable[[], None],
    ) -> None:
        self._callbacks = callbacks
        self._pins = pins
        self._send_firmware = send_firmware

    def dispatch(self, frame: SysexFrame) -> None:
        if frame.command == SysexCommand.REPORT_FIRMWARE:
            self._send_firmware()
        elif frame.command == SysexCommand.STRING_DATA:
            text = decode_string(frame.payload)
            if text is None:
                logger.debug("Empty STRING_DATA frame")
                return
            self._callbacks.invoke(Callback.STRING_DATA, text)
        else:
            self._callbacks.invoke(
                Callback.SYSEX, frame.command, len(frame.payload), frame.payload
            )

    def dispatch_multibyte(self, command: int, channel: int, args: bytes) -> None:
        """Dispatch a command whose arguments are complete.

        ``args`` is in buffer order: the last byte received comes first.
        """
        if command == Command.ANALOG_MESSAGE:
            # [pin, lsb, msb] in wire order
            frame = SysexFrame(
                command=SysexCommand.EXTENDED_ANALOG,
                payload=bytes([channel, args[1], args[0]]),
            )
            self.dispatch(frame)
        elif command == Command.DIGITAL_MESSAGE:
            value = (args[0] << 7) + args[1]
            self._callbacks.invoke(Callback.DIGITAL_MESSAGE, channel, value)
        elif command == Command.SET_PIN_MODE:
            pin, mode = args[1], args[0]
            if pin >= len(self._pins):
                logger.warning("SET_PIN_MODE for unknown pin %d ignored", pin)
                return
            self._pins.set_mode(pin, mode)
        elif command == Command.SET_DIGITAL_PIN_VALUE:
            self._callbacks.invoke(Callback.PIN_VALUE, args[1], args[0])
        elif command == Command.REPORT_ANALOG:
            self._callbacks.invoke(Callback.REPORT_ANALOG, channel, args[0])
        elif command == Command.REPORT_DIGITAL:
            self._callbacks.invoke(Callback.REPORT_DIGITAL, channel, args[0])
        else:
            logger.debug("No dispatch for command 0x%02X", command)
