"""In-process transport for tests and simulations."""

from __future__ import annotations

from collections import deque


class MemoryTransport:
    """A duplex byte buffer.

    Bytes passed to :meth:`inject` are what the engine reads; bytes the
    engine writes collect in :attr:`sent`. Two endpoints created with
    :meth:`pair` are cross-connected so that one side's writes become the
    other side's input.
    """

    def __init__(self) -> None:
        self._incoming: deque[int] = deque()
        self.sent = bytearray()
        self.flush_count = 0
        self._peer: MemoryTransport | None = None

    @classmethod
    def pair(cls) -> tuple[MemoryTransport, MemoryTransport]:
        a, b = cls(), cls()
        a._peer = b
        b._peer = a
        return a, b

    def inject(self, data: bytes) -> None:
        """Queue bytes to be read by the engine."""
        self._incoming.extend(data)

    def available(self) -> int:
        return len(self._incoming)

    def read(self, size: int = 1) -> bytes:
        count = min(size, len(self._incoming))
        return bytes(self._incoming.popleft() for _ in range(count))

    def write(self, data: bytes) -> int:
        self.sent.extend(data)
        if self._peer is not None:
            self._peer.inject(data)
        return len(data)

    def flush(self) -> None:
        self.flush_count += 1

    def take_sent(self) -> bytes:
        """Return and clear everything written so far."""
        data = bytes(self.sent)
        self.sent.clear()
        return data
