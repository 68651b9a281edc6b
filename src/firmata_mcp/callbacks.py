"""Callback registry: one handler slot per message category."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from .protocol.commands import Command, SysexCommand

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Callback(Enum):
    """Categories a handler can be attached to.

    Handler signatures:

    - ``DIGITAL_MESSAGE``: ``(port, value)``
    - ``REPORT_ANALOG``: ``(channel, enabled)``
    - ``REPORT_DIGITAL``: ``(port, enabled)``
    - ``PIN_MODE``: ``(pin, mode)``
    - ``PIN_VALUE``: ``(pin, value)``
    - ``SYSTEM_RESET``: ``()``
    - ``STRING_DATA``: ``(text)``
    - ``SYSEX``: ``(command, length, payload)``
    - ``DELAY_TASK``: ``(delay_ms)``
    """

    DIGITAL_MESSAGE = "digital_message"
    REPORT_ANALOG = "report_analog"
    REPORT_DIGITAL = "report_digital"
    PIN_MODE = "pin_mode"
    PIN_VALUE = "pin_value"
    SYSTEM_RESET = "system_reset"
    STRING_DATA = "string_data"
    SYSEX = "sysex"
    DELAY_TASK = "delay_task"


# Wire command ids accepted in place of a category
COMMAND_CALLBACKS: dict[int, Callback] = {
    Command.DIGITAL_MESSAGE: Callback.DIGITAL_MESSAGE,
    Command.REPORT_ANALOG: Callback.REPORT_ANALOG,
    Command.REPORT_DIGITAL: Callback.REPORT_DIGITAL,
    Command.SET_PIN_MODE: Callback.PIN_MODE,
    Command.SET_DIGITAL_PIN_VALUE: Callback.PIN_VALUE,
    Command.SYSTEM_RESET: Callback.SYSTEM_RESET,
    Command.START_SYSEX: Callback.SYSEX,
    SysexCommand.STRING_DATA: Callback.STRING_DATA,
}


def category_for(key: Callback | int | str) -> Callback:
    """Resolve a category from a ``Callback``, its name, or a command id."""
    if isinstance(key, Callback):
        return key
    if isinstance(key, str):
        try:
            return Callback(key.lower())
        except ValueError:
            raise ValueError(
                f"Unknown callback '{key}'. Valid: {[c.value for c in Callback]}"
            ) from None
    if key in COMMAND_CALLBACKS:
        return COMMAND_CALLBACKS[key]
    raise ValueError(f"No callback category for command 0x{key:02X}")


class CallbackRegistry:
    """Holds at most one handler per :class:`Callback` category."""

    def __init__(self) -> None:
        self._handlers: dict[Callback, Handler] = {}

    def attach(self, category: Callback | int | str, handler: Handler) -> None:
        """Register ``handler``, replacing any handler already in the slot."""
        self._handlers[category_for(category)] = handler

    def detach(self, category: Callback | int | str) -> None:
        self._handlers.pop(category_for(category), None)

    def get(self, category: Callback | int | str) -> Handler | None:
        return self._handlers.get(category_for(category))

    def is_attached(self, category: Callback | int | str) -> bool:
        return category_for(category) in self._handlers

    def invoke(self, category: Callback, *args: Any) -> bool:
        """Call the handler for ``category``.

        Returns:
            True if a handler ran, False if the slot was empty.
        """
        handler = self._handlers.get(category)
        if handler is None:
            logger.debug("No handler for %s", category.value)
            return False
        handler(*args)
        return True

    def clear(self) -> None:
        self._handlers.clear()

    def attached(self) -> list[str]:
        return [category.value for category in self._handlers]
