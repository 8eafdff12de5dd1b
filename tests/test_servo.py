"""Tests for the per-servo API."""

import struct

import pytest

from lx16a_mcp.errors import CallerInputError, Timeout, UnexpectedResponse
from lx16a_mcp.models.servo import LedErrorFlags, MotorMode
from lx16a_mcp.protocol.commands import Command
from lx16a_mcp.protocol.framing import BROADCAST_ID, build_frame, parse_frame
from lx16a_mcp.protocol.parser import AngleLimits, ModeState, MoveTarget
from lx16a_mcp.servo import Servo
from lx16a_mcp.transport.session import TransportSession

from conftest import FakeStream


@pytest.fixture
def session(stream, clock) -> TransportSession:
    return TransportSession(stream, clock=clock, timeout=0.1)


def _last_request(stream):
    return parse_frame(stream.written[-1])


def test_move_to(session, stream):
    session.servo(1).move_to(500, 1000)
    assert stream.written == [bytes([0x55, 0x55, 0x01, 0x07, 0x01, 0xF4, 0x01, 0xE8, 0x03, 0x16])]


def test_move_bounds_checked_before_io(session, stream):
    servo = session.servo(1)
    servo.move_to(0, 0)
    servo.move_to(1000, 0)
    for position in (-1, 1001):
        with pytest.raises(CallerInputError):
            servo.move_to(position, 0)
    assert len(stream.written) == 2


def test_read_position(session):
    assert session.servo(1).read_position() == 500
    assert session.servo(2).read_position() == 250


def test_read_position_is_repeatable(session):
    servo = session.servo(1)
    assert servo.read_position() == servo.read_position()


def test_read_position_timeout(session, clock):
    with pytest.raises(Timeout):
        session.servo(9).read_position(timeout=0.05)
    assert clock.now == pytest.approx(0.05)


def test_handle_timeout_overrides_session(session, clock):
    servo = session.servo(9, timeout=0.02)
    with pytest.raises(Timeout):
        servo.read_temperature()
    assert clock.now == pytest.approx(0.02)


def test_wrong_size_reply_is_discarded(clock):
    short = build_frame(1, Command.POS_READ, b"\x01")
    session = TransportSession(FakeStream(clock=clock, respond=lambda _: [short]), clock=clock)
    with pytest.raises(Timeout):
        session.servo(1).read_position()
    assert session.stats.discarded_frames == 1


def test_unknown_mode_is_unexpected_response(session, bus):
    bus.set(1, Command.OR_MOTOR_MODE_READ, struct.pack("<Bxh", 3, 0))
    with pytest.raises(UnexpectedResponse):
        session.servo(1).read_mode()


def test_motor_and_servo_mode(session, stream):
    servo = session.servo(1)
    servo.set_motor_mode(-250)
    assert _last_request(stream).parameters == struct.pack("<Bxh", 1, -250)
    servo.set_servo_mode()
    assert _last_request(stream).parameters == bytes(4)
    with pytest.raises(CallerInputError):
        servo.set_motor_mode(1500)


def test_read_mode(session):
    assert session.servo(1).read_mode() == ModeState(mode=MotorMode.SERVO, speed=0)


def test_led(session, stream):
    servo = session.servo(1)
    servo.set_led(False)
    request = _last_request(stream)
    assert request.command == Command.LED_CTRL_WRITE
    assert request.parameters == b"\x01"
    assert servo.read_led() is True


def test_led_error_flags(session, stream):
    servo = session.servo(1)
    servo.set_led_error_flags(LedErrorFlags.OVER_VOLTAGE)
    assert _last_request(stream).parameters == b"\x02"
    assert servo.read_led_error_flags() == (
        LedErrorFlags.OVER_TEMPERATURE | LedErrorFlags.OVER_VOLTAGE | LedErrorFlags.LOCKED_ROTOR
    )


def test_telemetry(session):
    servo = session.servo(1)
    assert servo.read_temperature() == 38
    assert servo.read_voltage() == 7400
    assert servo.is_torque_enabled() is True


def test_limits_and_offsets(session, bus):
    bus.set(1, Command.ANGLE_LIMIT_READ, struct.pack("<HH", 100, 900))
    bus.set(1, Command.ANGLE_OFFSET_READ, struct.pack("<b", -20))
    bus.set(1, Command.MOVE_TIME_READ, struct.pack("<HH", 600, 250))
    servo = session.servo(1)
    assert servo.read_angle_limits() == AngleLimits(min_position=100, max_position=900)
    assert servo.read_angle_offset() == -20
    assert servo.read_move_target() == MoveTarget(position=600, duration=250)


def test_configuration_writes(session, stream):
    servo = session.servo(1)
    servo.adjust_angle_offset(-20)
    servo.save_angle_offset()
    servo.set_angle_limits(100, 900)
    servo.set_voltage_limits(6000, 8400)
    servo.set_max_temperature(80)
    servo.set_torque(False)
    commands = [parse_frame(frame).command for frame in stream.written]
    assert commands == [
        Command.ANGLE_OFFSET_ADJUST,
        Command.ANGLE_OFFSET_WRITE,
        Command.ANGLE_LIMIT_WRITE,
        Command.VIN_LIMIT_WRITE,
        Command.TEMP_MAX_LIMIT_WRITE,
        Command.LOAD_OR_UNLOAD_WRITE,
    ]


def test_synchronized_move(session, stream):
    session.servo(1).prepare_move(300, 500)
    session.servo(2).prepare_move(700, 500)
    session.servo(BROADCAST_ID).start_move()
    last = _last_request(stream)
    assert last.servo_id == BROADCAST_ID
    assert last.command == Command.MOVE_START


def test_set_id_returns_new_handle(session, stream):
    new = session.servo(1).set_id(5)
    assert isinstance(new, Servo)
    assert new.servo_id == 5
    assert _last_request(stream).parameters == b"\x05"


def test_broadcast_read_id(session, bus):
    bus.registers.pop(2)
    assert session.servo(BROADCAST_ID).read_id() == 1


def test_broadcast_handle_refuses_other_reads(session, stream):
    with pytest.raises(CallerInputError):
        session.servo(BROADCAST_ID).read_position()
    assert stream.written == []


def test_invalid_servo_id():
    with pytest.raises(CallerInputError):
        Servo(session=None, servo_id=300)
