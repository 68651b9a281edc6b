"""Sysex frame value type and payload helpers.

A sysex message on the wire looks like::

    +-------------+-------------+---------------------+-----------+
    | START_SYSEX | Sub-command |   Payload (7-bit)   | END_SYSEX |
    |    0xF0     |   1 byte    |  0..MAX_DATA_BYTES  |   0xF7    |
    +-------------+-------------+---------------------+-----------+

The parser collects the sub-command and payload into one buffer and hands
a :class:`SysexFrame` to the dispatcher when ``END_SYSEX`` arrives.
"""

from __future__ import annotations

from dataclasses import dataclass

from .encoding import join_7bit

SCAN_WORD_SIZE = 4
HIGH_BIT_WORD = 0x80808080


@dataclass
class SysexFrame:
    """A completed sysex message."""

    command: int
    payload: bytes = b""

    @classmethod
    def from_buffer(cls, buffer: bytes | bytearray) -> SysexFrame:
        """Build a frame from a reassembly buffer ``[command, payload...]``."""
        return cls(command=buffer[0], payload=bytes(buffer[1:]))

    def __repr__(self) -> str:
        return (
            f"SysexFrame(command=0x{self.command:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def decode_string(payload: bytes) -> str | None:
    """Decode a STRING_DATA payload of 7-bit pairs into text.

    Each character is sent as ``(lsb, msb)``. Decoding stops at the first
    NUL so that senders which include their own terminator decode the same
    as those that don't.

    Characters keep all 14 bits. Peers that store each character in a
    single byte truncate to 8 bits, so a pair such as ``(0x00, 0x02)``
    decodes here as ``"\\u0100"`` while such a peer reads it as NUL and
    ends the string.

    Returns:
        The decoded text, or ``None`` if the payload holds no complete pair.
    """
    if len(payload) < 2:
        return None
    chars = []
    for i in range(0, len(payload) - 1, 2):
        code = join_7bit(payload[i], payload[i + 1])
        if code == 0:
            break
        chars.append(chr(code))
    return "".join(chars)


def scan_sysex_block(block: bytes, start: int, length: int, limit: int) -> int:
    """Return how many bytes of ``block`` can be appended to a sysex buffer in bulk.

    Bytes are taken in whole 4-byte groups starting at ``start``. Scanning
    stops at the first group containing a byte with the high bit set, when
    fewer than a full group plus one byte remain in the block, or when the
    next group would fill the buffer to ``limit``. The remaining bytes must
    go through the byte-wise parser so that terminators, resets and
    overflow are handled there.

    Args:
        block: Chunk read from the transport.
        start: Position in ``block`` to scan from.
        length: Bytes already held in the sysex buffer.
        limit: Buffer capacity (``max_data_bytes``).
    """
    pos = start
    end = len(block)
    while pos + SCAN_WORD_SIZE < end and length + SCAN_WORD_SIZE < limit:
        word = int.from_bytes(block[pos : pos + SCAN_WORD_SIZE], "little")
        if word & HIGH_BIT_WORD:
            break
        pos += SCAN_WORD_SIZE
        length += SCAN_WORD_SIZE
    return pos - start
