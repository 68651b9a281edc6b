"""Protocol layer: 7-bit encodings, command builders, sysex framing, and the stream parser."""

from .commands import Command, SysexCommand
from .framing import SysexFrame
from .parser import FrameParser, ParserMode
