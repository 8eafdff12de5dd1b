"""In-memory stand-ins for the serial port and the clock."""

from __future__ import annotations

import struct
from collections import deque

import pytest

from lx16a_mcp.protocol.commands import Command
from lx16a_mcp.protocol.framing import BROADCAST_ID, build_frame, parse_frame


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStream:
    """Scripted byte stream.

    ``respond`` is called with every written frame and returns the chunks
    the "servo" sends back. A read with nothing pending advances the fake
    clock by the full timeout, like a real port that stays silent.
    """

    def __init__(self, clock: FakeClock | None = None, respond=None, echo: bool = False) -> None:
        self.clock = clock
        self.respond = respond
        self.echo = echo
        self.written: list[bytes] = []
        self.resets = 0
        self._pending: deque[bytes] = deque()

    def feed(self, *chunks: bytes) -> None:
        self._pending.extend(chunks)

    def write(self, data: bytes) -> int:
        self.written.append(bytes(data))
        if self.echo:
            self._pending.append(bytes(data))
        if self.respond is not None:
            self._pending.extend(self.respond(bytes(data)) or ())
        return len(data)

    def read(self, max_bytes: int, timeout: float) -> bytes:
        if not self._pending:
            if self.clock is not None:
                self.clock.advance(timeout)
            return b""
        chunk = self._pending.popleft()
        if len(chunk) > max_bytes:
            self._pending.appendleft(chunk[max_bytes:])
            chunk = chunk[:max_bytes]
        return chunk

    def reset_input_buffer(self) -> None:
        self.resets += 1
        self._pending.clear()


class SimulatedBus:
    """Answers read commands from a table of register values per servo."""

    def __init__(self) -> None:
        self.registers: dict[int, dict[int, bytes]] = {}

    def set(self, servo_id: int, command: Command, parameters: bytes) -> None:
        self.registers.setdefault(servo_id, {})[int(command)] = parameters

    def __call__(self, request: bytes) -> list[bytes]:
        frame = parse_frame(request)
        ids = list(self.registers) if frame.servo_id == BROADCAST_ID else [frame.servo_id]
        replies = []
        for servo_id in ids:
            parameters = self.registers.get(servo_id, {}).get(frame.command)
            if parameters is not None:
                replies.append(build_frame(servo_id, frame.command, parameters))
        return replies


def position_reply(servo_id: int, position: int) -> bytes:
    return build_frame(servo_id, Command.POS_READ, struct.pack("<h", position))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bus() -> SimulatedBus:
    bus = SimulatedBus()
    bus.set(1, Command.POS_READ, struct.pack("<h", 500))
    bus.set(1, Command.TEMP_READ, bytes([38]))
    bus.set(1, Command.VIN_READ, struct.pack("<H", 7400))
    bus.set(1, Command.OR_MOTOR_MODE_READ, struct.pack("<Bxh", 0, 0))
    bus.set(1, Command.LOAD_OR_UNLOAD_READ, bytes([1]))
    bus.set(1, Command.LED_CTRL_READ, bytes([0]))
    bus.set(1, Command.LED_ERROR_READ, bytes([7]))
    bus.set(1, Command.ID_READ, bytes([1]))
    bus.set(2, Command.POS_READ, struct.pack("<h", 250))
    bus.set(2, Command.ID_READ, bytes([2]))
    return bus


@pytest.fixture
def stream(clock: FakeClock, bus: SimulatedBus) -> FakeStream:
    return FakeStream(clock=clock, respond=bus)
