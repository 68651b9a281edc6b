"""Protocol version and firmware identity."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProtocolVersion:
    """Version of the wire protocol implemented by the engine."""

    major: int
    minor: int
    bugfix: int = 0

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.bugfix}"


PROTOCOL_VERSION = ProtocolVersion(major=2, minor=7, bugfix=0)


@dataclass
class FirmwareIdentity:
    """Name and version a device reports for a REPORT_FIRMWARE request.

    This is independent of the protocol version. A blank name means the
    identity has not been configured and firmware reports are suppressed.
    """

    name: str = ""
    major: int = 0
    minor: int = 0

    @property
    def configured(self) -> bool:
        return bool(self.name)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": f"{self.major}.{self.minor}",
            "configured": self.configured,
        }
