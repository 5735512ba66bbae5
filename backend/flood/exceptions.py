"""
exceptions.py — Flood Package Errors
=====================================

Store and I/O failures are not wrapped; they propagate to the caller
unchanged.  These types cover the errors the package itself raises.
"""


class FloodError(Exception):
    """Base class for errors raised by the flood package."""


class ConfigError(FloodError, ValueError):
    """A threshold or window in FloodConfig is out of range."""


class UnknownSensorError(FloodError, KeyError):
    """A calibration or lookup referenced a sensor that is not registered."""

    def __init__(self, sensor_id: str):
        super().__init__(sensor_id)
        self.sensor_id = sensor_id

    def __str__(self) -> str:
        return f"Unknown sensor: {self.sensor_id}"
