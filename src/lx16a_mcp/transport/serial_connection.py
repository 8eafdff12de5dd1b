"""Serial port connection to an LX-16A bus.

The servos share one half-duplex UART line, usually reached through a
USB debug board (BusLinker) or a single-wire adapter that echoes every
transmitted byte back to the receiver.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import serial

from ..errors import CommunicationError

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200
DEFAULT_TIMEOUT = 0.1  # seconds, per request/response exchange
READ_CHUNK_SIZE = 64
READ_POLL_INTERVAL = 0.01  # seconds, longest single blocking read


@dataclass
class PortInfo:
    """Settings the port was opened with."""

    port: str = ""
    baudrate: int = DEFAULT_BAUDRATE


class SerialConnection:
    """Byte-stream wrapper around a pyserial port.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        conn.write(frame_bytes)
        data = conn.read(READ_CHUNK_SIZE, timeout=0.05)
        conn.close()

    Any pyserial failure is re-raised as ``CommunicationError``.
    """

    def __init__(self, port: str, baudrate: int = DEFAULT_BAUDRATE) -> None:
        self._info = PortInfo(port=port, baudrate=baudrate)
        self._serial: serial.Serial | None = None

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def port_info(self) -> PortInfo:
        return self._info

    def open(self) -> PortInfo:
        """Open the serial port.

        Raises:
            CommunicationError: If the port cannot be opened.
        """
        try:
            self._serial = serial.Serial(
                port=self._info.port,
                baudrate=self._info.baudrate,
                timeout=READ_POLL_INTERVAL,
            )
        except serial.SerialException as e:
            raise CommunicationError(
                f"Could not open serial port {self._info.port!r} at "
                f"{self._info.baudrate} baud: {e}"
            ) from e

        logger.info("Opened %s at %d baud", self._info.port, self._info.baudrate)
        return self._info

    def close(self) -> None:
        """Close the serial port."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing %s: %s", self._info.port, e)
        finally:
            self._serial = None
            logger.info("Closed %s", self._info.port)

    def _port(self) -> serial.Serial:
        if not self.connected:
            raise CommunicationError("Serial port is not open")
        return self._serial

    def write(self, data: bytes) -> int:
        """Write bytes and wait until they have left the output buffer.

        Returns:
            Number of bytes written.
        """
        port = self._port()
        try:
            written = port.write(data)
            port.flush()
        except serial.SerialException as e:
            raise CommunicationError(f"Write to {self._info.port} failed: {e}") from e
        return written

    def read(self, max_bytes: int = READ_CHUNK_SIZE, timeout: float = DEFAULT_TIMEOUT) -> bytes:
        """Read whatever is available, waiting at most ``timeout`` seconds.

        Blocks until at least one byte arrives or the wait expires, then
        returns that byte together with anything else already buffered.
        A single wait never exceeds ``READ_POLL_INTERVAL``, so the port
        timeout stays fixed while callers poll against their own deadline.

        Returns:
            Up to ``max_bytes`` bytes, or ``b""`` on timeout.
        """
        port = self._port()
        try:
            timeout = min(max(timeout, 0.0), READ_POLL_INTERVAL)
            if port.timeout != timeout:
                port.timeout = timeout
            data = port.read(1)
            if data and max_bytes > 1:
                waiting = port.in_waiting
                if waiting:
                    data += port.read(min(waiting, max_bytes - 1))
        except serial.SerialException as e:
            raise CommunicationError(f"Read from {self._info.port} failed: {e}") from e
        return data

    def reset_input_buffer(self) -> None:
        """Discard any unread input."""
        try:
            self._port().reset_input_buffer()
        except serial.SerialException as e:
            raise CommunicationError(f"Flushing {self._info.port} failed: {e}") from e
