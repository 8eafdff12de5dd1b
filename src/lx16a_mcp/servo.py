"""Typed per-servo API on top of a shared transport session."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, TypeVar

from .models.servo import LedErrorFlags, MotorMode
from .protocol import commands, parser
from .protocol.commands import Command
from .protocol.framing import BROADCAST_ID, Frame

if TYPE_CHECKING:
    from .transport.session import TransportSession

T = TypeVar("T")


class Servo:
    """One addressed servo on a bus.

    Handles hold nothing but the servo ID, a default timeout and a
    reference to the session, so they are cheap to create and safe to
    share between threads. Obtain one with ``TransportSession.servo()``.

    Every method blocks until the exchange completes. Invalid arguments
    raise ``CallerInputError`` before anything is sent; transport failures
    raise ``Timeout`` or ``CommunicationError``.
    """

    def __init__(
        self,
        session: TransportSession,
        servo_id: int,
        timeout: float | None = None,
    ) -> None:
        self.servo_id = commands.check_servo_id(servo_id)
        self.session = session
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"Servo(servo_id={self.servo_id})"

    @property
    def is_broadcast(self) -> bool:
        return self.servo_id == BROADCAST_ID

    def _send(self, request: bytes, timeout: float | None = None) -> None:
        self.session.exchange(request, expects_response=False, timeout=self._budget(timeout))

    def _query(
        self,
        command: Command,
        parse: Callable[[Frame], T],
        timeout: float | None = None,
    ) -> T:
        request = commands.build_read(self.servo_id, command)
        frame = self.session.exchange(request, expects_response=True, timeout=self._budget(timeout))
        return parse(frame)

    def _budget(self, timeout: float | None) -> float | None:
        return self.timeout if timeout is None else timeout

    # ─── MOTION ──────────────────────────────────────────────────────

    def move_to(self, position: int, duration: int, timeout: float | None = None) -> None:
        """Move to ``position`` (0-1000) over ``duration`` milliseconds (0-30000)."""
        self._send(commands.build_move_time_write(self.servo_id, position, duration), timeout)

    def prepare_move(self, position: int, duration: int, timeout: float | None = None) -> None:
        """Load a move that starts on the next ``start_move()``.

        Sending this to several servos and then ``start_move()`` to the
        broadcast ID starts them together.
        """
        self._send(commands.build_move_time_wait_write(self.servo_id, position, duration), timeout)

    def start_move(self, timeout: float | None = None) -> None:
        self._send(commands.build_move_start(self.servo_id), timeout)

    def stop_move(self, timeout: float | None = None) -> None:
        self._send(commands.build_move_stop(self.servo_id), timeout)

    def read_move_target(self, timeout: float | None = None) -> parser.MoveTarget:
        """Read the position and duration of the last MOVE_TIME_WRITE."""
        return self._query(Command.MOVE_TIME_READ, parser.parse_move_time, timeout)

    def read_prepared_move(self, timeout: float | None = None) -> parser.MoveTarget:
        return self._query(Command.MOVE_TIME_WAIT_READ, parser.parse_move_time_wait, timeout)

    def read_position(self, timeout: float | None = None) -> int:
        """Read the current position. May fall slightly outside 0-1000."""
        return self._query(Command.POS_READ, parser.parse_position, timeout)

    # ─── MODE ────────────────────────────────────────────────────────

    def set_mode(self, mode: MotorMode, speed: int = 0, timeout: float | None = None) -> None:
        self._send(commands.build_mode_write(self.servo_id, mode, speed), timeout)

    def set_motor_mode(self, speed: int, timeout: float | None = None) -> None:
        """Rotate continuously at ``speed`` (-1000 to 1000)."""
        self.set_mode(MotorMode.MOTOR, speed, timeout)

    def set_servo_mode(self, timeout: float | None = None) -> None:
        """Return to position control."""
        self.set_mode(MotorMode.SERVO, 0, timeout)

    def read_mode(self, timeout: float | None = None) -> parser.ModeState:
        return self._query(Command.OR_MOTOR_MODE_READ, parser.parse_mode, timeout)

    def set_torque(self, enabled: bool, timeout: float | None = None) -> None:
        """Power the motor (hold position) or release it."""
        self._send(commands.build_load_or_unload_write(self.servo_id, enabled), timeout)

    def is_torque_enabled(self, timeout: float | None = None) -> bool:
        return self._query(Command.LOAD_OR_UNLOAD_READ, parser.parse_load_state, timeout)

    # ─── LED ─────────────────────────────────────────────────────────

    def set_led(self, on: bool, timeout: float | None = None) -> None:
        self._send(commands.build_led_ctrl_write(self.servo_id, on), timeout)

    def read_led(self, timeout: float | None = None) -> bool:
        return self._query(Command.LED_CTRL_READ, parser.parse_led_ctrl, timeout)

    def set_led_error_flags(self, flags: LedErrorFlags, timeout: float | None = None) -> None:
        """Select which faults make the LED flash."""
        self._send(commands.build_led_error_write(self.servo_id, flags), timeout)

    def read_led_error_flags(self, timeout: float | None = None) -> LedErrorFlags:
        return self._query(Command.LED_ERROR_READ, parser.parse_led_error, timeout)

    # ─── CONFIGURATION ───────────────────────────────────────────────

    def set_id(self, new_id: int, timeout: float | None = None) -> Servo:
        """Assign a new persistent ID and return a handle addressing it."""
        self._send(commands.build_id_write(self.servo_id, new_id), timeout)
        return Servo(self.session, new_id, timeout=self.timeout)

    def read_id(self, timeout: float | None = None) -> int:
        """Read the servo's ID. On the broadcast handle only one servo may be attached."""
        return self._query(Command.ID_READ, parser.parse_id, timeout)

    def adjust_angle_offset(self, offset: int, timeout: float | None = None) -> None:
        self._send(commands.build_angle_offset_adjust(self.servo_id, offset), timeout)

    def save_angle_offset(self, timeout: float | None = None) -> None:
        """Persist the offset set by ``adjust_angle_offset()``."""
        self._send(commands.build_angle_offset_write(self.servo_id), timeout)

    def read_angle_offset(self, timeout: float | None = None) -> int:
        return self._query(Command.ANGLE_OFFSET_READ, parser.parse_angle_offset, timeout)

    def set_angle_limits(
        self, min_position: int, max_position: int, timeout: float | None = None
    ) -> None:
        self._send(
            commands.build_angle_limit_write(self.servo_id, min_position, max_position),
            timeout,
        )

    def read_angle_limits(self, timeout: float | None = None) -> parser.AngleLimits:
        return self._query(Command.ANGLE_LIMIT_READ, parser.parse_angle_limits, timeout)

    def set_voltage_limits(self, min_mv: int, max_mv: int, timeout: float | None = None) -> None:
        self._send(commands.build_vin_limit_write(self.servo_id, min_mv, max_mv), timeout)

    def read_voltage_limits(self, timeout: float | None = None) -> parser.VoltageLimits:
        return self._query(Command.VIN_LIMIT_READ, parser.parse_vin_limits, timeout)

    def set_max_temperature(self, temperature: int, timeout: float | None = None) -> None:
        self._send(commands.build_temp_max_limit_write(self.servo_id, temperature), timeout)

    def read_max_temperature(self, timeout: float | None = None) -> int:
        return self._query(Command.TEMP_MAX_LIMIT_READ, parser.parse_temp_max_limit, timeout)

    # ─── TELEMETRY ───────────────────────────────────────────────────

    def read_temperature(self, timeout: float | None = None) -> int:
        """Read the internal temperature in degrees Celsius."""
        return self._query(Command.TEMP_READ, parser.parse_temperature, timeout)

    def read_voltage(self, timeout: float | None = None) -> int:
        """Read the supply voltage in millivolts."""
        return self._query(Command.VIN_READ, parser.parse_voltage, timeout)
