"""Request/response exchanges over a shared half-duplex servo bus.

One ``TransportSession`` owns one byte stream (one physical port). Every
exchange holds the session lock from the first byte written until the
reply is decoded or the deadline passes, so servo handles on different
threads can share a session without interleaving traffic on the wire.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Callable, Protocol

from ..errors import (
    BadChecksum,
    BadHeader,
    CommunicationError,
    IncompleteFrame,
    ServoBusError,
    Timeout,
)
from ..protocol.commands import READ_COMMANDS
from ..protocol.framing import BROADCAST_ID, Frame, find_header, parse_frame
from .serial_connection import (
    DEFAULT_BAUDRATE,
    DEFAULT_TIMEOUT,
    READ_CHUNK_SIZE,
    SerialConnection,
)

if TYPE_CHECKING:
    from ..servo import Servo

logger = logging.getLogger(__name__)


class ByteStream(Protocol):
    """The byte-level operations the session needs from a port."""

    def write(self, data: bytes) -> int: ...

    def read(self, max_bytes: int, timeout: float) -> bytes: ...

    def reset_input_buffer(self) -> None: ...

    def close(self) -> None: ...


@dataclass
class ExchangeStats:
    """Counters for diagnosing a noisy bus."""

    exchanges: int = 0
    timeouts: int = 0
    discarded_bytes: int = 0
    discarded_frames: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class TransportSession:
    """Serializes request/response exchanges on one byte stream.

    Usage::

        with TransportSession.open("/dev/ttyUSB0") as session:
            servo = session.servo(1)
            servo.move_to(500, 1000)

    Args:
        stream: Byte stream to talk through.
        timeout: Default per-exchange time budget in seconds.
        discard_echo: Drain the byte-for-byte echo that single-wire
            adapters produce after a write-only command. Echoes of read
            requests are always recognised and skipped.
        clock: Monotonic time source in seconds.
        owns_stream: Close ``stream`` when the session is closed.
    """

    def __init__(
        self,
        stream: ByteStream,
        timeout: float = DEFAULT_TIMEOUT,
        discard_echo: bool = False,
        clock: Callable[[], float] = time.monotonic,
        owns_stream: bool = False,
    ) -> None:
        self._stream = stream
        self.timeout = timeout
        self.discard_echo = discard_echo
        self._clock = clock
        self._owns_stream = owns_stream
        self._lock = threading.Lock()
        self.stats = ExchangeStats()

    @classmethod
    def open(
        cls,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = DEFAULT_TIMEOUT,
        discard_echo: bool = False,
    ) -> TransportSession:
        """Open a serial port and return a session that owns it."""
        connection = SerialConnection(port, baudrate)
        connection.open()
        return cls(connection, timeout=timeout, discard_echo=discard_echo, owns_stream=True)

    @property
    def stream(self) -> ByteStream:
        return self._stream

    def close(self) -> None:
        if self._owns_stream:
            with self._lock:
                self._stream.close()

    def __enter__(self) -> TransportSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def servo(self, servo_id: int, timeout: float | None = None) -> Servo:
        """Return a handle for the servo with ``servo_id`` on this bus."""
        from ..servo import Servo

        return Servo(self, servo_id, timeout=timeout)

    def exchange(
        self,
        request: bytes,
        expects_response: bool,
        timeout: float | None = None,
    ) -> Frame | None:
        """Send an encoded request and, for read commands, wait for the reply.

        Args:
            request: A complete frame from ``build_frame``.
            expects_response: True for read commands.
            timeout: Time budget in seconds, defaulting to ``self.timeout``.

        Returns:
            The decoded reply frame, or None for write-only commands.

        Raises:
            Timeout: If no matching reply was decoded in time.
            CommunicationError: If the byte stream failed.
        """
        budget = self.timeout if timeout is None else timeout
        with self._lock:
            deadline = self._clock() + budget
            self.stats.exchanges += 1

            self._call(self._stream.reset_input_buffer)
            logger.debug("TX %s", request.hex(" "))
            self._call(self._stream.write, request)

            if not expects_response:
                if self.discard_echo:
                    self._drain_echo(len(request), deadline)
                return None

            return self._receive(request, deadline, budget)

    def _call(self, func, *args):
        """Run a byte-stream operation, mapping I/O failures to CommunicationError."""
        try:
            return func(*args)
        except ServoBusError:
            raise
        except OSError as e:
            raise CommunicationError(f"Byte stream failure: {e}") from e

    def _drain_echo(self, size: int, deadline: float) -> None:
        received = 0
        while received < size:
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            received += len(self._call(self._stream.read, size - received, remaining))
        if received < size:
            logger.warning("Expected %d echo bytes, received %d", size, received)

    def _receive(self, request: bytes, deadline: float, budget: float) -> Frame:
        buffer = bytearray()
        while True:
            frame = self._extract(buffer, request)
            if frame is not None:
                return frame

            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            chunk = self._call(self._stream.read, READ_CHUNK_SIZE, remaining)
            if chunk:
                logger.debug("RX %s", bytes(chunk).hex(" "))
                buffer.extend(chunk)

        self.stats.timeouts += 1
        logger.warning(
            "No reply from servo %d to command %d within %.3fs (%d byte(s) pending)",
            request[2],
            request[4],
            budget,
            len(buffer),
        )
        self._call(self._stream.reset_input_buffer)
        raise Timeout(
            f"No reply from servo {request[2]} to command {request[4]} within {budget:.3f}s"
        )

    def _extract(self, buffer: bytearray, request: bytes) -> Frame | None:
        """Pop frames off ``buffer`` until one answers ``request``.

        A frame that decodes but does not answer the request is dropped
        only up to the next header after its first byte. A corrupted
        length byte can make a shorter frame decode out of the start of a
        real reply, and the real reply must still be found.
        """
        reply_size = READ_COMMANDS.get(request[4])
        while buffer:
            try:
                frame = parse_frame(buffer)
            except IncompleteFrame:
                return None
            except (BadHeader, BadChecksum) as e:
                skip = find_header(buffer)
                logger.debug("Discarding %d byte(s): %s", skip, e)
                self.stats.discarded_bytes += skip
                del buffer[:skip]
                continue

            if buffer[: frame.wire_size] == request:
                del buffer[: frame.wire_size]
                logger.debug("Skipping echo of request")
                continue
            if not _answers(frame, request, reply_size):
                skip = find_header(buffer)
                self.stats.discarded_frames += 1
                logger.debug("Discarding unrelated %r", frame)
                del buffer[:skip]
                continue
            del buffer[: frame.wire_size]
            return frame
        return None


def _answers(frame: Frame, request: bytes, reply_size: int | None = None) -> bool:
    servo_id, command = request[2], request[4]
    if frame.command != command:
        return False
    if reply_size is not None and len(frame.parameters) != reply_size:
        return False
    return servo_id == BROADCAST_ID or frame.servo_id == servo_id
