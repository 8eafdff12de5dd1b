"""Data models for servo modes and LED settings."""

from .servo import LedErrorFlags, MotorMode
