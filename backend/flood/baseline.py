"""
baseline.py — Per-Sensor Baseline Estimation
=============================================

The baseline is the sensor's dry-street reference distance.  Depth is
measured against it, so a bad baseline shifts every depth of the run.

Estimate, in order of preference:
    1. Median of night-time distances (UTC hour in [22, 24) ∪ [0, 5))
    2. Median of all distances
    3. The reading's own distance (zero depth) when the sensor has no
       usable distance at all

Baselines are recomputed from the full history on every batch run and
are never shared between sensors.
"""

import logging
from typing import Iterable, Optional

from . import stats
from .config import FloodConfig
from .models import Baseline, RawReading, NIGHT_MEDIAN, ALL_MEDIAN, SELF

logger = logging.getLogger("flood.baseline")


def is_night(hour: int, start_hour: int, end_hour: int) -> bool:
    """True if ``hour`` falls in the [start_hour, end_hour) window, wrapping midnight."""
    if start_hour <= end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


class BaselineEstimator:
    """
    Computes one Baseline per sensor from its reading history.

    Attributes:
        config (FloodConfig): Supplies the night window hours.
    """

    def __init__(self, config: FloodConfig = None):
        self.config = config or FloodConfig()

    def is_night(self, reading: RawReading) -> bool:
        return is_night(reading.timestamp.hour,
                        self.config.night_start_hour,
                        self.config.night_end_hour)

    def estimate(self, sensor_id: str, readings: Iterable[RawReading]) -> Optional[Baseline]:
        """
        Estimate the baseline for one sensor.

        Readings without a distance are ignored.

        Returns:
            Baseline from the night or all-readings median, or None if no
            reading carries a distance (callers then fall back to each
            reading's own distance).
        """
        night, everything = [], []
        for r in readings:
            if r.distance_mm is None:
                continue
            everything.append(r.distance_mm)
            if self.is_night(r):
                night.append(r.distance_mm)

        if night:
            baseline = Baseline(sensor_id, stats.median(night), NIGHT_MEDIAN)
        elif everything:
            baseline = Baseline(sensor_id, stats.median(everything), ALL_MEDIAN)
        else:
            logger.debug(f"Sensor {sensor_id}: no distances, no baseline")
            return None

        logger.debug(f"Sensor {sensor_id}: baseline {baseline.value_mm:.1f} mm "
                     f"({baseline.source}, night={len(night)}, all={len(everything)})")
        return baseline

    def estimate_all(self, readings: Iterable[RawReading]) -> dict:
        """
        Estimate baselines for every sensor present in ``readings``.

        Returns:
            Dict mapping sensor_id → Baseline (sensors with no distance
            at all are omitted).
        """
        by_sensor = {}
        for r in readings:
            by_sensor.setdefault(r.sensor_id, []).append(r)

        baselines = {}
        for sensor_id, sensor_readings in by_sensor.items():
            baseline = self.estimate(sensor_id, sensor_readings)
            if baseline is not None:
                baselines[sensor_id] = baseline
        return baselines

    @staticmethod
    def for_reading(reading: RawReading, baselines: dict) -> Baseline:
        """
        Baseline to apply to one reading, falling back to the reading's
        own distance so that its depth comes out as zero.
        """
        baseline = baselines.get(reading.sensor_id)
        if baseline is not None:
            return baseline
        return Baseline(reading.sensor_id, reading.distance_mm, SELF)
