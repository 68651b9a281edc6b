"""Transport interface consumed by the engine."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """A duplex byte channel with non-blocking reads.

    The engine never opens, closes or reconfigures a transport.
    """

    def available(self) -> int:
        """Number of bytes that can be read without blocking."""
        ...

    def read(self, size: int = 1) -> bytes:
        """Read up to ``size`` bytes; returns ``b""`` when nothing is pending."""
        ...

    def write(self, data: bytes) -> int:
        ...

    def flush(self) -> None:
        ...
