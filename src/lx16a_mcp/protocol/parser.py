"""Reply parsing for read commands."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from ..errors import UnexpectedResponse
from ..models.servo import LedErrorFlags, MotorMode
from .commands import READ_COMMANDS, Command
from .framing import Frame


@dataclass
class MoveTarget:
    """Parsed MOVE_TIME_READ / MOVE_TIME_WAIT_READ reply."""

    position: int
    duration: int


@dataclass
class ModeState:
    """Parsed OR_MOTOR_MODE_READ reply."""

    mode: MotorMode
    speed: int

    def to_dict(self) -> dict:
        return {"mode": self.mode.name.lower(), "speed": self.speed}


@dataclass
class AngleLimits:
    """Parsed ANGLE_LIMIT_READ reply."""

    min_position: int
    max_position: int


@dataclass
class VoltageLimits:
    """Parsed VIN_LIMIT_READ reply, in millivolts."""

    min_mv: int
    max_mv: int


def _payload(frame: Frame, command: Command) -> bytes:
    """Check that ``frame`` answers ``command`` and return its parameters."""
    if frame.command != command:
        raise UnexpectedResponse(
            f"Expected reply to {command.name} ({command.value}), got command {frame.command}"
        )
    expected = READ_COMMANDS[command]
    if len(frame.parameters) != expected:
        raise UnexpectedResponse(
            f"{command.name} reply must carry {expected} parameter bytes, "
            f"got {len(frame.parameters)}"
        )
    return frame.parameters


def _parse_move_target(frame: Frame, command: Command) -> MoveTarget:
    position, duration = struct.unpack("<HH", _payload(frame, command))
    return MoveTarget(position=position, duration=duration)


def parse_move_time(frame: Frame) -> MoveTarget:
    return _parse_move_target(frame, Command.MOVE_TIME_READ)


def parse_move_time_wait(frame: Frame) -> MoveTarget:
    return _parse_move_target(frame, Command.MOVE_TIME_WAIT_READ)


def parse_id(frame: Frame) -> int:
    return _payload(frame, Command.ID_READ)[0]


def parse_angle_offset(frame: Frame) -> int:
    """Parse the signed position offset (-125 to 125)."""
    return struct.unpack("<b", _payload(frame, Command.ANGLE_OFFSET_READ))[0]


def parse_angle_limits(frame: Frame) -> AngleLimits:
    low, high = struct.unpack("<HH", _payload(frame, Command.ANGLE_LIMIT_READ))
    return AngleLimits(min_position=low, max_position=high)


def parse_vin_limits(frame: Frame) -> VoltageLimits:
    low, high = struct.unpack("<HH", _payload(frame, Command.VIN_LIMIT_READ))
    return VoltageLimits(min_mv=low, max_mv=high)


def parse_temp_max_limit(frame: Frame) -> int:
    return _payload(frame, Command.TEMP_MAX_LIMIT_READ)[0]


def parse_temperature(frame: Frame) -> int:
    """Parse the internal temperature in degrees Celsius."""
    return _payload(frame, Command.TEMP_READ)[0]


def parse_voltage(frame: Frame) -> int:
    """Parse the supply voltage in millivolts."""
    return struct.unpack("<H", _payload(frame, Command.VIN_READ))[0]


def parse_position(frame: Frame) -> int:
    """Parse the current position.

    The value is signed: a horn pushed past its end stop reads slightly
    below 0 or above 1000.
    """
    return struct.unpack("<h", _payload(frame, Command.POS_READ))[0]


def parse_mode(frame: Frame) -> ModeState:
    raw_mode, speed = struct.unpack("<Bxh", _payload(frame, Command.OR_MOTOR_MODE_READ))
    try:
        mode = MotorMode(raw_mode)
    except ValueError:
        raise UnexpectedResponse(f"Unknown motor mode {raw_mode} in reply") from None
    if mode == MotorMode.SERVO:
        speed = 0
    return ModeState(mode=mode, speed=speed)


def parse_load_state(frame: Frame) -> bool:
    """Parse whether the motor is powered and holding position."""
    return bool(_payload(frame, Command.LOAD_OR_UNLOAD_READ)[0])


def parse_led_ctrl(frame: Frame) -> bool:
    """Parse the LED state. On the wire 0 means on."""
    return _payload(frame, Command.LED_CTRL_READ)[0] == 0


def parse_led_error(frame: Frame) -> LedErrorFlags:
    return LedErrorFlags(_payload(frame, Command.LED_ERROR_READ)[0] & 0x07)


PARSERS = {
    Command.MOVE_TIME_READ: parse_move_time,
    Command.MOVE_TIME_WAIT_READ: parse_move_time_wait,
    Command.ID_READ: parse_id,
    Command.ANGLE_OFFSET_READ: parse_angle_offset,
    Command.ANGLE_LIMIT_READ: parse_angle_limits,
    Command.VIN_LIMIT_READ: parse_vin_limits,
    Command.TEMP_MAX_LIMIT_READ: parse_temp_max_limit,
    Command.TEMP_READ: parse_temperature,
    Command.VIN_READ: parse_voltage,
    Command.POS_READ: parse_position,
    Command.OR_MOTOR_MODE_READ: parse_mode,
    Command.LOAD_OR_UNLOAD_READ: parse_load_state,
    Command.LED_CTRL_READ: parse_led_ctrl,
    Command.LED_ERROR_READ: parse_led_error,
}


def parse_response(frame: Frame):
    """Auto-dispatch a frame to the parser for its opcode.

    Returns the parsed value, or the raw Frame if the opcode has no
    reply parser (write commands and unknown opcodes).
    """
    parser = PARSERS.get(frame.command)
    if parser is None:
        return frame
    return parser(frame)
