"""Exception hierarchy for the servo bus driver.

Caller-input errors are raised before anything touches the wire. Framing
errors are internal to the transport read loop and only surface as a
``Timeout``. Transport errors are always surfaced to the caller.
"""

from __future__ import annotations


class ServoBusError(Exception):
    """Base class for every error raised by this package."""


class CallerInputError(ServoBusError, ValueError):
    """A position, duration, speed or ID is outside the protocol range."""


class ParameterOutOfRange(CallerInputError):
    """A frame cannot be encoded with the given ID, opcode or parameters."""


class FramingError(ServoBusError):
    """A byte buffer does not hold a valid frame at its start."""


class IncompleteFrame(FramingError):
    """More bytes are needed before the frame can be decoded."""


class BadHeader(FramingError):
    """The buffer does not start with a plausible frame header."""


class BadChecksum(FramingError):
    """The frame checksum does not match its contents."""


class UnexpectedResponse(ServoBusError):
    """A valid frame was received but its contents do not fit the request."""


class TransportError(ServoBusError, IOError):
    """The request/response exchange failed at the transport level."""


class Timeout(TransportError):
    """No valid response frame arrived before the deadline."""


class CommunicationError(TransportError):
    """The underlying byte stream reported a hard I/O failure."""
