"""Host-side driver and MCP server for LX-16A serial bus servos."""

from .errors import (
    BadChecksum,
    BadHeader,
    CallerInputError,
    CommunicationError,
    FramingError,
    IncompleteFrame,
    ParameterOutOfRange,
    ServoBusError,
    Timeout,
    TransportError,
    UnexpectedResponse,
)
from .models.servo import LedErrorFlags, MotorMode
from .protocol.framing import BROADCAST_ID, Frame, build_frame, parse_frame
from .servo import Servo
from .transport.session import TransportSession

__version__ = "0.1.0"
