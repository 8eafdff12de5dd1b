"""MCP server entry point for an LX-16A servo bus.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import CallerInputError, ServoBusError, Timeout, UnexpectedResponse
from .protocol.commands import READ_COMMANDS, Command, check_servo_id
from .protocol.framing import BROADCAST_ID, MAX_ID
from .servo import Servo
from .transport.serial_connection import DEFAULT_BAUDRATE, DEFAULT_TIMEOUT
from .transport.session import TransportSession

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "lx16a",
    instructions="MCP server for LX-16A serial bus servos",
)

# Global connection state
_session: TransportSession | None = None
_port: str = ""


def _get_session() -> TransportSession:
    """Get the active bus session, raising if not connected."""
    if _session is None:
        raise RuntimeError(
            "Not connected to a servo bus. Use the 'connect' tool first."
        )
    return _session


def _servo(servo_id: int) -> Servo:
    return _get_session().servo(servo_id)


def _error(e: ServoBusError) -> dict[str, Any]:
    result: dict[str, Any] = {"error": str(e)}
    if isinstance(e, Timeout):
        result["timeout"] = True
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    port: str,
    baudrate: int = DEFAULT_BAUDRATE,
    timeout: float = DEFAULT_TIMEOUT,
    discard_echo: bool = False,
) -> dict[str, Any]:
    """Open the serial port the servo bus is attached to.

    Args:
        port: Serial device, e.g. /dev/ttyUSB0 or COM4.
        baudrate: Bus speed (LX-16A servos use 115200).
        timeout: Per-command reply timeout in seconds.
        discard_echo: Set for single-wire adapters that echo sent bytes.
    """
    global _session, _port
    if _session is not None:
        return {"connected": True, "message": "Already connected", "port": _port}

    try:
        _session = TransportSession.open(
            port, baudrate=baudrate, timeout=timeout, discard_echo=discard_echo
        )
    except ServoBusError as e:
        return _error(e)
    _port = port
    logger.info("Connected to servo bus on %s", port)
    return {"connected": True, "port": port, "baudrate": baudrate}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial port."""
    global _session, _port
    if _session is None:
        return {"disconnected": True}
    _session.close()
    logger.info("Disconnected from %s", _port)
    _session = None
    _port = ""
    return {"disconnected": True}


@mcp.tool()
def scan_bus(start: int = 0, end: int = MAX_ID, timeout: float = 0.02) -> dict[str, Any]:
    """Find the servo IDs that answer on the bus.

    Args:
        start: First ID to probe (0-253).
        end: Last ID to probe (0-253).
        timeout: Reply timeout per ID in seconds.
    """
    if not 0 <= start <= MAX_ID or not 0 <= end <= MAX_ID:
        return {"error": f"ID range must be 0-{MAX_ID}"}
    if start > end:
        start, end = end, start

    found = []
    for servo_id in range(start, end + 1):
        try:
            found.append(_servo(servo_id).read_id(timeout=timeout))
        except (Timeout, UnexpectedResponse):
            continue
        except ServoBusError as e:
            return _error(e)
    return {"servos": found}


# ─── MOTION TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def move_servo(servo_id: int, position: int, duration_ms: int = 1000) -> dict[str, Any]:
    """Move a servo to a position over a duration.

    Args:
        servo_id: Servo ID (0-253, or 254 for every servo).
        position: Target position 0-1000 (0-240 degrees).
        duration_ms: Travel time 0-30000 milliseconds.
    """
    try:
        _servo(servo_id).move_to(position, duration_ms)
    except ServoBusError as e:
        return _error(e)
    return {"servo_id": servo_id, "position": position, "duration_ms": duration_ms}


@mcp.tool()
def read_position(servo_id: int) -> dict[str, Any]:
    """Read the current position of a servo (0-1000 nominal)."""
    try:
        position = _servo(servo_id).read_position()
    except ServoBusError as e:
        return _error(e)
    return {"servo_id": servo_id, "position": position}


@mcp.tool()
def set_motor_mode(servo_id: int, speed: int) -> dict[str, Any]:
    """Switch a servo to continuous rotation.

    Args:
        servo_id: Servo ID.
        speed: Signed speed -1000 to 1000.
    """
    try:
        _servo(servo_id).set_motor_mode(speed)
    except ServoBusError as e:
        return _error(e)
    return {"servo_id": servo_id, "mode": "motor", "speed": speed}


@mcp.tool()
def set_servo_mode(servo_id: int) -> dict[str, Any]:
    """Switch a servo back to position control."""
    try:
        _servo(servo_id).set_servo_mode()
    except ServoBusError as e:
        return _error(e)
    return {"servo_id": servo_id, "mode": "servo"}


@mcp.tool()
def set_torque(servo_id: int, enabled: bool) -> dict[str, Any]:
    """Power a servo's motor so it holds position, or release it."""
    try:
        _servo(servo_id).set_torque(enabled)
    except ServoBusError as e:
        return _error(e)
    return {"servo_id": servo_id, "torque": enabled}


@mcp.tool()
def set_led(servo_id: int, on: bool) -> dict[str, Any]:
    """Turn a servo's status LED on or off."""
    try:
        _servo(servo_id).set_led(on)
    except ServoBusError as e:
        return _error(e)
    return {"servo_id": servo_id, "led": on}


# ─── STATUS TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def get_servo_status(servo_id: int) -> dict[str, Any]:
    """Read position, mode, temperature, voltage, torque and LED settings.

    Args:
        servo_id: Servo ID (0-253).
    """
    try:
        check_servo_id(servo_id, allow_broadcast=False)
    except CallerInputError as e:
        return _error(e)

    servo = _servo(servo_id)
    try:
        return {
            "servo_id": servo_id,
            "position": servo.read_position(),
            "mode": servo.read_mode().to_dict(),
            "temperature_c": servo.read_temperature(),
            "voltage_mv": servo.read_voltage(),
            "torque": servo.is_torque_enabled(),
            "led": servo.read_led(),
            "led_error_flags": servo.read_led_error_flags().to_dict(),
        }
    except ServoBusError as e:
        return _error(e)


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("lx16a://bus/status")
def resource_bus_status() -> str:
    """Connection state and exchange counters."""
    if _session is None:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": True,
        "port": _port,
        "timeout": _session.timeout,
        "discard_echo": _session.discard_echo,
        "stats": _session.stats.to_dict(),
    })


@mcp.resource("lx16a://catalog/commands")
def resource_command_catalog() -> str:
    """Every protocol opcode with its name and reply size."""
    catalog = [
        {
            "opcode": command.value,
            "name": command.name,
            "kind": "read" if command in READ_COMMANDS else "write",
            "reply_parameters": READ_COMMANDS.get(command, 0),
        }
        for command in Command
    ]
    return json.dumps({"commands": catalog, "broadcast_id": BROADCAST_ID})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
