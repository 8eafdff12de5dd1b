"""Command opcodes and request builders.

Each command is identified by a single-byte opcode used both in the
host-to-servo request and, for read commands, in the servo's reply.
Builders validate their arguments against the protocol ranges before a
frame is constructed, so a ``CallerInputError`` never reaches the wire.
"""

from __future__ import annotations

import struct
from enum import IntEnum

from ..errors import CallerInputError
from ..models.servo import LedErrorFlags, MotorMode
from .framing import BROADCAST_ID, MAX_ID, MIN_ID, build_frame

MIN_POSITION = 0
MAX_POSITION = 1000
MIN_DURATION = 0
MAX_DURATION = 30000
MIN_SPEED = -1000
MAX_SPEED = 1000
MIN_ANGLE_OFFSET = -125
MAX_ANGLE_OFFSET = 125
MIN_VOLTAGE_MV = 4500
MAX_VOLTAGE_MV = 12000
MIN_TEMPERATURE_LIMIT = 50
MAX_TEMPERATURE_LIMIT = 100

_TWO_UNSIGNED_SHORTS = struct.Struct("<HH")
_MODE_AND_SPEED = struct.Struct("<Bxh")
_SIGNED_CHAR = struct.Struct("<b")


class Command(IntEnum):
    """LX-16A command opcodes."""

    MOVE_TIME_WRITE = 1
    MOVE_TIME_READ = 2
    MOVE_TIME_WAIT_WRITE = 7
    MOVE_TIME_WAIT_READ = 8
    MOVE_START = 11
    MOVE_STOP = 12
    ID_WRITE = 13
    ID_READ = 14
    ANGLE_OFFSET_ADJUST = 17
    ANGLE_OFFSET_WRITE = 18
    ANGLE_OFFSET_READ = 19
    ANGLE_LIMIT_WRITE = 20
    ANGLE_LIMIT_READ = 21
    VIN_LIMIT_WRITE = 22
    VIN_LIMIT_READ = 23
    TEMP_MAX_LIMIT_WRITE = 24
    TEMP_MAX_LIMIT_READ = 25
    TEMP_READ = 26
    VIN_READ = 27
    POS_READ = 28
    OR_MOTOR_MODE_WRITE = 29
    OR_MOTOR_MODE_READ = 30
    LOAD_OR_UNLOAD_WRITE = 31
    LOAD_OR_UNLOAD_READ = 32
    LED_CTRL_WRITE = 33
    LED_CTRL_READ = 34
    LED_ERROR_WRITE = 35
    LED_ERROR_READ = 36


# Read commands mapped to the parameter count of the servo's reply
READ_COMMANDS: dict[Command, int] = {
    Command.MOVE_TIME_READ: 4,
    Command.MOVE_TIME_WAIT_READ: 4,
    Command.ID_READ: 1,
    Command.ANGLE_OFFSET_READ: 1,
    Command.ANGLE_LIMIT_READ: 4,
    Command.VIN_LIMIT_READ: 4,
    Command.TEMP_MAX_LIMIT_READ: 1,
    Command.TEMP_READ: 1,
    Command.VIN_READ: 2,
    Command.POS_READ: 2,
    Command.OR_MOTOR_MODE_READ: 4,
    Command.LOAD_OR_UNLOAD_READ: 1,
    Command.LED_CTRL_READ: 1,
    Command.LED_ERROR_READ: 1,
}


def is_read_command(command: int) -> bool:
    """Return True if the servo answers ``command`` with a reply frame."""
    return command in READ_COMMANDS


def _check_range(name: str, value: int, low: int, high: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise CallerInputError(f"{name} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise CallerInputError(f"{name} must be {low}-{high}, got {value}")
    return value


def check_servo_id(servo_id: int, allow_broadcast: bool = True) -> int:
    """Validate a servo ID, optionally accepting the broadcast ID."""
    high = BROADCAST_ID if allow_broadcast else MAX_ID
    return _check_range("Servo ID", servo_id, MIN_ID, high)


def build_command(servo_id: int, command: Command, parameters: bytes = b"") -> bytes:
    """Build a request frame for any command.

    Read commands expect an individual reply, so they are refused for the
    broadcast ID. ``ID_READ`` is the exception: it is how the ID of a
    lone servo on the bus is discovered.
    """
    allow_broadcast = not is_read_command(command) or command == Command.ID_READ
    check_servo_id(servo_id, allow_broadcast=allow_broadcast)
    return build_frame(servo_id, command.value, parameters)


def _build_move(servo_id: int, command: Command, position: int, duration: int) -> bytes:
    _check_range("Position", position, MIN_POSITION, MAX_POSITION)
    _check_range("Duration", duration, MIN_DURATION, MAX_DURATION)
    return build_command(servo_id, command, _TWO_UNSIGNED_SHORTS.pack(position, duration))


def build_move_time_write(servo_id: int, position: int, duration: int) -> bytes:
    """Build a command that moves immediately to ``position`` over ``duration`` ms.

    Args:
        servo_id: Target servo ID.
        position: Target position 0-1000 (0-240 degrees).
        duration: Travel time 0-30000 milliseconds.
    """
    return _build_move(servo_id, Command.MOVE_TIME_WRITE, position, duration)


def build_move_time_wait_write(servo_id: int, position: int, duration: int) -> bytes:
    """Build a move that is held by the servo until MOVE_START arrives."""
    return _build_move(servo_id, Command.MOVE_TIME_WAIT_WRITE, position, duration)


def build_move_start(servo_id: int) -> bytes:
    return build_command(servo_id, Command.MOVE_START)


def build_move_stop(servo_id: int) -> bytes:
    return build_command(servo_id, Command.MOVE_STOP)


def build_id_write(servo_id: int, new_id: int) -> bytes:
    """Build a command that assigns a new, persistent ID to a servo."""
    _check_range("New servo ID", new_id, MIN_ID, MAX_ID)
    return build_command(servo_id, Command.ID_WRITE, bytes([new_id]))


def build_angle_offset_adjust(servo_id: int, offset: int) -> bytes:
    """Build a command that adjusts the position offset.

    Args:
        servo_id: Target servo ID.
        offset: Offset in position units, -125 to 125 (about +/-30 degrees).
            Not persisted until ANGLE_OFFSET_WRITE is sent.
    """
    _check_range("Angle offset", offset, MIN_ANGLE_OFFSET, MAX_ANGLE_OFFSET)
    return build_command(servo_id, Command.ANGLE_OFFSET_ADJUST, _SIGNED_CHAR.pack(offset))


def build_angle_offset_write(servo_id: int) -> bytes:
    return build_command(servo_id, Command.ANGLE_OFFSET_WRITE)


def build_angle_limit_write(servo_id: int, min_position: int, max_position: int) -> bytes:
    """Build a command that sets the persistent position limits."""
    _check_range("Minimum position", min_position, MIN_POSITION, MAX_POSITION)
    _check_range("Maximum position", max_position, MIN_POSITION, MAX_POSITION)
    if min_position >= max_position:
        raise CallerInputError(
            f"Minimum position must be below maximum, got {min_position} >= {max_position}"
        )
    return build_command(
        servo_id,
        Command.ANGLE_LIMIT_WRITE,
        _TWO_UNSIGNED_SHORTS.pack(min_position, max_position),
    )


def build_vin_limit_write(servo_id: int, min_mv: int, max_mv: int) -> bytes:
    """Build a command that sets the supply voltage window in millivolts."""
    _check_range("Minimum voltage", min_mv, MIN_VOLTAGE_MV, MAX_VOLTAGE_MV)
    _check_range("Maximum voltage", max_mv, MIN_VOLTAGE_MV, MAX_VOLTAGE_MV)
    if min_mv >= max_mv:
        raise CallerInputError(
            f"Minimum voltage must be below maximum, got {min_mv} >= {max_mv}"
        )
    return build_command(
        servo_id, Command.VIN_LIMIT_WRITE, _TWO_UNSIGNED_SHORTS.pack(min_mv, max_mv)
    )


def build_temp_max_limit_write(servo_id: int, temperature: int) -> bytes:
    """Build a command that sets the over-temperature cutoff in degrees Celsius."""
    _check_range(
        "Temperature limit", temperature, MIN_TEMPERATURE_LIMIT, MAX_TEMPERATURE_LIMIT
    )
    return build_command(servo_id, Command.TEMP_MAX_LIMIT_WRITE, bytes([temperature]))


def build_mode_write(servo_id: int, mode: MotorMode, speed: int = 0) -> bytes:
    """Build a command that switches between servo and motor mode.

    Args:
        servo_id: Target servo ID.
        mode: ``MotorMode.SERVO`` or ``MotorMode.MOTOR``.
        speed: Signed rotation speed -1000 to 1000, used in motor mode.
            Must be 0 in servo mode.
    """
    try:
        mode = MotorMode(mode)
    except ValueError:
        raise CallerInputError(f"Unknown motor mode {mode!r}") from None
    _check_range("Speed", speed, MIN_SPEED, MAX_SPEED)
    if mode == MotorMode.SERVO and speed != 0:
        raise CallerInputError(f"Speed must be 0 in servo mode, got {speed}")
    return build_command(
        servo_id, Command.OR_MOTOR_MODE_WRITE, _MODE_AND_SPEED.pack(mode.value, speed)
    )


def build_load_or_unload_write(servo_id: int, loaded: bool) -> bytes:
    """Build a command that powers (loads) or releases (unloads) the motor."""
    return build_command(servo_id, Command.LOAD_OR_UNLOAD_WRITE, bytes([1 if loaded else 0]))


def build_led_ctrl_write(servo_id: int, on: bool) -> bytes:
    """Build an LED control command. On the wire 0 means on and 1 means off."""
    return build_command(servo_id, Command.LED_CTRL_WRITE, bytes([0 if on else 1]))


def build_led_error_write(servo_id: int, flags: LedErrorFlags | int) -> bytes:
    """Build a command selecting which faults make the LED flash."""
    _check_range("LED error flags", flags, 0, 7)
    return build_command(servo_id, Command.LED_ERROR_WRITE, bytes([int(flags)]))


def build_read(servo_id: int, command: Command) -> bytes:
    """Build a parameterless request for a read command."""
    if not is_read_command(command):
        raise CallerInputError(f"{command!r} is not a read command")
    return build_command(servo_id, command)
