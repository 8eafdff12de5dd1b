"""Enumerations for servo modes and LED error indication."""

from __future__ import annotations

from enum import IntEnum, IntFlag


class MotorMode(IntEnum):
    """Operating mode selected by OR_MOTOR_MODE_WRITE."""

    SERVO = 0
    MOTOR = 1


class LedErrorFlags(IntFlag):
    """Fault conditions that make the status LED flash."""

    NONE = 0
    OVER_TEMPERATURE = 1
    OVER_VOLTAGE = 2
    LOCKED_ROTOR = 4

    def to_dict(self) -> dict[str, bool]:
        return {
            "over_temperature": bool(self & LedErrorFlags.OVER_TEMPERATURE),
            "over_voltage": bool(self & LedErrorFlags.OVER_VOLTAGE),
            "locked_rotor": bool(self & LedErrorFlags.LOCKED_ROTOR),
        }
