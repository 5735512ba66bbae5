"""
flood_status.py — Flood Level Classification
=============================================

Maps a water depth (mm) to a flood level used by alerting and by any
consumer that colours sensors by severity.

    depth is None   → No Data            (severity -1, gray)
    depth < 10      → No Flooding        (0, green)
    depth < 50      → Low Flooding       (1, yellow)
    depth < 150     → Moderate Flooding  (2, orange)
    depth < 300     → Major Flooding     (3, red)
    otherwise       → Extreme Flooding   (4, dark red)
"""

from dataclasses import dataclass
from typing import Optional

from . import config

NO_DATA = "No Data"
NO_FLOODING = "No Flooding"
LOW_FLOODING = "Low Flooding"
MODERATE_FLOODING = "Moderate Flooding"
MAJOR_FLOODING = "Major Flooding"
EXTREME_FLOODING = "Extreme Flooding"

# Map marker colours (hex)
COLOR_GRAY = "#6b7280"
COLOR_GREEN = "#22c55e"
COLOR_YELLOW = "#eab308"
COLOR_ORANGE = "#f97316"
COLOR_RED = "#ef4444"
COLOR_DARK_RED = "#7f1d1d"


@dataclass(frozen=True)
class FloodStatus:
    level: str
    severity: int
    map_color: str

    @property
    def is_moderate_or_higher(self) -> bool:
        return self.severity >= 2

    @property
    def is_low_or_below(self) -> bool:
        return self.severity <= 1


def get_flood_status(depth_mm: Optional[float]) -> FloodStatus:
    """Classify a water depth in mm."""
    if depth_mm is None:
        return FloodStatus(NO_DATA, -1, COLOR_GRAY)
    if depth_mm < config.FLOOD_LEVEL_LOW:
        return FloodStatus(NO_FLOODING, 0, COLOR_GREEN)
    if depth_mm < config.FLOOD_LEVEL_MODERATE:
        return FloodStatus(LOW_FLOODING, 1, COLOR_YELLOW)
    if depth_mm < config.FLOOD_LEVEL_MAJOR:
        return FloodStatus(MODERATE_FLOODING, 2, COLOR_ORANGE)
    if depth_mm < config.FLOOD_LEVEL_EXTREME:
        return FloodStatus(MAJOR_FLOODING, 3, COLOR_RED)
    return FloodStatus(EXTREME_FLOODING, 4, COLOR_DARK_RED)
