"""Frame checksum used by the LX-16A bus servo protocol.

The checksum is the low byte of the one's complement of the sum of every
byte between the header and the checksum itself.
"""

from __future__ import annotations


def checksum(servo_id: int, length: int, command: int, parameters: bytes = b"") -> int:
    """Compute the checksum byte for a frame.

    Args:
        servo_id: Addressed servo ID.
        length: Value of the frame length byte.
        command: Command opcode.
        parameters: Wire-ready parameter bytes.

    Returns:
        The checksum as an integer in 0-255.
    """
    total = servo_id + length + command + sum(parameters)
    return ~total & 0xFF
