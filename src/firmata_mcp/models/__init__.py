"""Data models for pins and firmware identity."""

from .firmware import PROTOCOL_VERSION, FirmwareIdentity, ProtocolVersion
from .pins import PinMode, PinTable
