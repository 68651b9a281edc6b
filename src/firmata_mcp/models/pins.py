"""Per-pin mode and state table."""

from __future__ import annotations

from collections.abc import Callable
from enum import IntEnum

DEFAULT_TOTAL_PINS = 20


class PinMode(IntEnum):
    """Pin modes as sent in SET_PIN_MODE."""

    INPUT = 0x00
    OUTPUT = 0x01
    ANALOG = 0x02
    PWM = 0x03
    SERVO = 0x04
    SHIFT = 0x05
    I2C = 0x06
    ONEWIRE = 0x07
    STEPPER = 0x08
    ENCODER = 0x09
    SERIAL = 0x0A
    PULLUP = 0x0B
    SPI = 0x0C
    SONAR = 0x0D
    TONE = 0x0E
    DHT = 0x0F
    FREQUENCY = 0x10
    IGNORE = 0x7F


def mode_name(mode: int) -> str:
    """Human-readable mode name, falling back to hex for unknown values."""
    try:
        return PinMode(mode).name.lower()
    except ValueError:
        return f"0x{mode:02X}"


class PinTable:
    """Fixed-size store of pin modes and states.

    A pin whose mode is ``IGNORE`` is locked: :meth:`set_mode` leaves it
    untouched. Indices outside ``0 <= pin < total_pins`` raise
    ``IndexError``.

    Args:
        total_pins: Number of pins on the board.
        on_mode_change: Called with ``(pin, mode)`` after a mode change.
    """

    def __init__(
        self,
        total_pins: int = DEFAULT_TOTAL_PINS,
        on_mode_change: Callable[[int, int], None] | None = None,
    ) -> None:
        if total_pins < 1:
            raise ValueError(f"total_pins must be positive, got {total_pins}")
        self._total_pins = total_pins
        self._modes: list[int] = [PinMode.INPUT] * total_pins
        self._states: list[int] = [0] * total_pins
        self._on_mode_change = on_mode_change

    @property
    def total_pins(self) -> int:
        return self._total_pins

    def __len__(self) -> int:
        return self._total_pins

    def _check(self, pin: int) -> None:
        if not 0 <= pin < self._total_pins:
            raise IndexError(
                f"Pin must be 0-{self._total_pins - 1}, got {pin}"
            )

    def get_mode(self, pin: int) -> int:
        self._check(pin)
        return self._modes[pin]

    def get_state(self, pin: int) -> int:
        self._check(pin)
        return self._states[pin]

    def set_mode(self, pin: int, mode: int) -> None:
        """Assign a new mode and clear the pin's state.

        No-op if the pin is set to ``IGNORE``.
        """
        self._check(pin)
        if self._modes[pin] == PinMode.IGNORE:
            return
        self._states[pin] = 0
        try:
            self._modes[pin] = PinMode(mode)
        except ValueError:
            self._modes[pin] = mode
        if self._on_mode_change is not None:
            self._on_mode_change(pin, mode)

    def set_state(self, pin: int, value: int) -> None:
        """Record a value already applied by a pin driver."""
        self._check(pin)
        self._states[pin] = value

    def reset(self) -> None:
        """Return every pin to INPUT with state 0."""
        self._modes = [PinMode.INPUT] * self._total_pins
        self._states = [0] * self._total_pins

    def snapshot(self) -> list[dict]:
        return [
            {"pin": pin, "mode": mode_name(mode), "state": state}
            for pin, (mode, state) in enumerate(zip(self._modes, self._states))
        ]
