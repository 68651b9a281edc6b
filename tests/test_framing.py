"""Tests for sysex frame helpers."""

from firmata_mcp.protocol.framing import SysexFrame, decode_string, scan_sysex_block


def test_frame_from_buffer():
    frame = SysexFrame.from_buffer(bytearray([0x6F, 3, 0x7F, 0x01]))
    assert frame.command == 0x6F
    assert frame.payload == bytes([3, 0x7F, 0x01])


def test_frame_repr():
    """Frame repr should be readable."""
    r = repr(SysexFrame(command=0x71, payload=b"\x48\x00"))
    assert "0x71" in r
    assert "48 00" in r
    assert "(empty)" in repr(SysexFrame(command=0x79))


def test_decode_string():
    assert decode_string(bytes([0x48, 0x00, 0x69, 0x00])) == "Hi"


def test_decode_string_stops_at_nul():
    assert decode_string(bytes([0x48, 0x00, 0x00, 0x00, 0x69, 0x00])) == "H"


def test_decode_string_keeps_14_bit_characters():
    """High bits of a character are not truncated away."""
    assert decode_string(bytes([0x00, 0x02, 0x41, 0x00])) == "\u0100A"


def test_decode_string_needs_a_pair():
    assert decode_string(b"") is None
    assert decode_string(b"\x48") is None


def test_scan_takes_whole_clean_groups():
    block = bytes(range(1, 10))  # 9 clean bytes
    # Groups are taken while more than 4 bytes remain after the position
    assert scan_sysex_block(block, 0, length=1, limit=64) == 8


def test_scan_stops_at_high_bit_group():
    block = bytes([1, 2, 3, 4, 5, 0xF7, 7, 8, 9, 10])
    assert scan_sysex_block(block, 0, length=0, limit=64) == 4


def test_scan_respects_buffer_limit():
    block = bytes(20)
    # 60 + 4 would reach the limit, so nothing is taken
    assert scan_sysex_block(block, 0, length=60, limit=64) == 0
    assert scan_sysex_block(block, 0, length=55, limit=64) == 8


def test_scan_short_block():
    assert scan_sysex_block(b"\x01\x02\x03\x04", 0, length=0, limit=64) == 0
