"""Firmata protocol engine with an MCP server front end."""

from .callbacks import Callback, CallbackRegistry
from .config import EngineConfig, SerialConfig
from .engine import FirmataEngine
from .models.pins import PinMode, PinTable
from .protocol.commands import Command, SysexCommand

__version__ = "0.1.0"
