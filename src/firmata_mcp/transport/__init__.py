"""Byte transports the engine can be attached to."""

from .base import Transport
from .memory import MemoryTransport
from .serial_connection import SerialConnection
