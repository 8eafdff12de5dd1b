"""Tests for the frame checksum."""

from lx16a_mcp.utils.checksum import checksum


def test_checksum_move_example():
    """Move servo 1 to 500 over 1000 ms, the protocol manual's example frame."""
    result = checksum(0x01, 0x07, 0x01, bytes([0xF4, 0x01, 0xE8, 0x03]))
    assert result == 0x16


def test_checksum_position_read():
    """POS_READ request to servo 1 carries no parameters."""
    assert checksum(0x01, 0x03, 0x1C) == 0xDF


def test_checksum_wraps_past_one_byte():
    """Sums above 255 keep only the low byte before inverting."""
    result = checksum(0xFE, 0x07, 0xFF, bytes([0xFF, 0xFF, 0xFF, 0xFF]))
    total = 0xFE + 0x07 + 0xFF + 4 * 0xFF
    assert result == (0xFF - (total % 256))


def test_checksum_range():
    for servo_id in (0, 1, 127, 253, 254):
        assert 0 <= checksum(servo_id, 3, 28) <= 0xFF


def test_checksum_different_inputs():
    assert checksum(1, 3, 28) != checksum(2, 3, 28)
