"""
utils.py — Shared Utility Functions and Logging Setup
======================================================

Common helpers used across the flood package modules.
"""

import logging
from datetime import datetime, timezone

from . import config


def setup_logging(level: str = None) -> None:
    """
    Configure logging for the flood package.

    Sets up a console handler with timestamp, logger name, level,
    and message. All flood.* loggers inherit this configuration.

    Args:
        level: Log level string (DEBUG/INFO/WARNING/ERROR/CRITICAL).
               Defaults to config.LOG_LEVEL.
    """
    level = level or config.LOG_LEVEL
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    flood_logger = logging.getLogger("flood")
    flood_logger.setLevel(numeric_level)

    # Avoid duplicate handlers on repeated calls
    if not flood_logger.handlers:
        flood_logger.addHandler(handler)


def now_ms() -> int:
    """Current UTC time in epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def parse_timestamp_ms(value) -> int:
    """
    Convert a request timestamp to epoch milliseconds.

    Accepts epoch milliseconds (int/float), an ISO-8601 string (a
    trailing 'Z' is accepted; naive times are taken as UTC), or None
    for "now".

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if value is None:
        return now_ms()
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp() * 1000)
