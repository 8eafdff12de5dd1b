"""Frame builder and parser for the LX-16A serial bus protocol.

Frame layout::

    +----------+---------+--------+---------+------------------+----------+
    |  Header  | ServoID | Length | Command |    Parameters    | Checksum |
    |  2 bytes | 1 byte  | 1 byte | 1 byte  |    0-4 bytes     |  1 byte  |
    +----------+---------+--------+---------+------------------+----------+

- Header: 0x55 0x55
- ServoID: 0-253, or 254 to address every servo on the bus
- Length: count of (length + command + parameters + checksum) bytes,
  i.e. ``3 + len(parameters)``
- Parameters: multi-byte fields are little-endian
- Checksum: ``~(ServoID + Length + Command + sum(Parameters)) & 0xFF``
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import BadChecksum, BadHeader, IncompleteFrame, ParameterOutOfRange
from ..utils.checksum import checksum

HEADER = b"\x55\x55"
MIN_ID = 0
MAX_ID = 253
BROADCAST_ID = 254
MAX_PARAMETERS = 4
MIN_LENGTH = 3
MAX_LENGTH = MIN_LENGTH + MAX_PARAMETERS
# header(2) + id(1) + length(1) + command(1) + checksum(1)
FRAME_OVERHEAD = 6


@dataclass(frozen=True)
class Frame:
    """A decoded protocol frame."""

    servo_id: int
    command: int
    parameters: bytes = b""

    @property
    def length(self) -> int:
        """Value of the frame's length byte."""
        return MIN_LENGTH + len(self.parameters)

    @property
    def wire_size(self) -> int:
        """Number of bytes the frame occupies on the wire."""
        return FRAME_OVERHEAD + len(self.parameters)

    def to_bytes(self) -> bytes:
        return build_frame(self.servo_id, self.command, self.parameters)

    def __repr__(self) -> str:
        return (
            f"Frame(servo_id={self.servo_id}, command={self.command}, "
            f"parameters={self.parameters.hex(' ') if self.parameters else '(empty)'})"
        )


def build_frame(servo_id: int, command: int, parameters: bytes = b"") -> bytes:
    """Encode a single protocol frame.

    Args:
        servo_id: Target servo ID (0-253) or ``BROADCAST_ID``.
        command: Single-byte command opcode.
        parameters: Wire-ready parameter bytes.

    Returns:
        The complete frame, header and checksum included.

    Raises:
        ParameterOutOfRange: If the ID, opcode or parameter count cannot
            be represented in a frame.
    """
    if not MIN_ID <= servo_id <= BROADCAST_ID:
        raise ParameterOutOfRange(
            f"Servo ID must be {MIN_ID}-{BROADCAST_ID}, got {servo_id}"
        )
    if not 0 <= command <= 0xFF:
        raise ParameterOutOfRange(f"Command must be 0-255, got {command}")
    if len(parameters) > MAX_PARAMETERS:
        raise ParameterOutOfRange(
            f"At most {MAX_PARAMETERS} parameter bytes fit in a frame, "
            f"got {len(parameters)}"
        )

    length = MIN_LENGTH + len(parameters)
    body = bytes([servo_id, length, command]) + bytes(parameters)
    return HEADER + body + bytes([checksum(servo_id, length, command, parameters)])


def parse_frame(data: bytes) -> Frame:
    """Decode the frame at the start of ``data``.

    Bytes after the end of the frame are ignored; use ``Frame.wire_size``
    to find where the next frame starts.

    Raises:
        IncompleteFrame: If ``data`` is a valid prefix of a frame.
        BadHeader: If ``data`` does not start with the header, or the
            length byte is impossible.
        BadChecksum: If the checksum byte does not match.
    """
    if data[: len(HEADER)] != HEADER[: len(data)]:
        raise BadHeader(f"Expected header {HEADER.hex(' ')}, got {bytes(data[:2]).hex(' ')}")
    if len(data) < 4:
        raise IncompleteFrame("Header received, waiting for length byte")

    servo_id = data[2]
    length = data[3]
    if not MIN_LENGTH <= length <= MAX_LENGTH:
        raise BadHeader(f"Invalid length byte {length}")

    total = len(HEADER) + 1 + length
    if len(data) < total:
        raise IncompleteFrame(f"Need {total} bytes, have {len(data)}")

    command = data[4]
    parameters = bytes(data[5 : total - 1])
    received = data[total - 1]
    expected = checksum(servo_id, length, command, parameters)
    if received != expected:
        raise BadChecksum(
            f"Checksum mismatch: received 0x{received:02X}, expected 0x{expected:02X}"
        )

    return Frame(servo_id=servo_id, command=command, parameters=parameters)


def find_header(data: bytes, start: int = 1) -> int:
    """Return the offset of the next candidate header at or after ``start``.

    If no complete header is found, a trailing lone header byte is kept
    since it may be the first half of one still in flight. Returns
    ``len(data)`` when nothing in the buffer is worth keeping.
    """
    index = data.find(HEADER, start)
    if index != -1:
        return index
    if len(data) > start and data[-1] == HEADER[0]:
        return len(data) - 1
    return len(data)
