"""Protocol layer: frame codec, command dialects, and response decoding."""

from .framing import FrameDecoder, build_command_frame, build_frame, parse_frame
from .commands import Dialect, EncodedCommand, encode_command, encode_commands
from .parser import MultimeterReading, RawReading, Reading
