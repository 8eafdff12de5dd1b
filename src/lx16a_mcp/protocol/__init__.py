"""Protocol layer: frame codec, checksum, command builders, and reply parsing."""

from .framing import Frame, build_frame, parse_frame
from .commands import Command, build_command
