"""7-bit safe numeric encodings.

Every data byte on the wire must have its high bit clear, since bytes in
``0x80-0xFF`` are reserved for commands. Values wider than 7 bits are
therefore split into groups of 7 bits, least significant group first::

    14-bit  ->  [bits 0-6] [bits 7-13]
    32-bit  ->  [bits 0-6] [bits 7-13] [bits 14-20] [bits 21-27] [bits 28-31]
    64-bit  ->  packed32(low 32 bits) + packed32(high 32 bits)

All functions are total: inputs are truncated to the representable width,
never rejected.
"""

from __future__ import annotations

from collections.abc import Iterable

MASK_7BIT = 0x7F
MASK_14BIT = 0x3FFF
MASK_32BIT = 0xFFFFFFFF
MASK_64BIT = 0xFFFFFFFFFFFFFFFF

PACKED14_SIZE = 2
PACKED32_SIZE = 5
PACKED64_SIZE = 10


def split_7bit(value: int) -> tuple[int, int]:
    """Split a 14-bit value into ``(lsb, msb)``, both below 0x80."""
    return value & MASK_7BIT, (value >> 7) & MASK_7BIT


def join_7bit(lsb: int, msb: int) -> int:
    """Join two 7-bit bytes back into a 14-bit value."""
    return (lsb & MASK_7BIT) | ((msb & MASK_7BIT) << 7)


def encode_packed14(value: int) -> bytes:
    return bytes(split_7bit(value))


def decode_packed14(data: bytes) -> int:
    return join_7bit(data[0], data[1])


def encode_packed32(value: int) -> bytes:
    """Encode an unsigned 32-bit value as five 7-bit bytes.

    The fifth byte only carries the top 4 bits.
    """
    value &= MASK_32BIT
    return bytes([
        value & 0x7F,
        (value >> 7) & 0x7F,
        (value >> 14) & 0x7F,
        (value >> 21) & 0x7F,
        (value >> 28) & 0x0F,
    ])


def decode_packed32(data: bytes) -> int:
    """Decode five 7-bit bytes into an unsigned 32-bit value."""
    result = data[0] & 0x7F
    result |= (data[1] & 0x7F) << 7
    result |= (data[2] & 0x7F) << 14
    result |= (data[3] & 0x7F) << 21
    result |= (data[4] & 0x7F) << 28
    return result & MASK_32BIT


def encode_packed64(value: int) -> bytes:
    value &= MASK_64BIT
    return encode_packed32(value & MASK_32BIT) + encode_packed32(value >> 32)


def decode_packed64(data: bytes) -> int:
    low = decode_packed32(data[:PACKED32_SIZE])
    high = decode_packed32(data[PACKED32_SIZE:PACKED64_SIZE])
    return low | (high << 32)


def encode_7bit_pairs(data: Iterable[int]) -> bytes:
    """Split every byte of ``data`` into an ``(lsb, msb)`` pair.

    This is how sysex bodies and strings carry full 8-bit bytes.
    """
    out = bytearray()
    for value in data:
        out.extend(split_7bit(value))
    return bytes(out)


def decode_7bit_pairs(data: bytes) -> bytes:
    """Join consecutive 7-bit pairs back into bytes.

    A trailing unpaired byte is dropped.
    """
    return bytes(
        join_7bit(data[i], data[i + 1]) & 0xFF
        for i in range(0, len(data) - 1, 2)
    )
