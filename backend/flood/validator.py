"""
validator.py — Streaming Reading Validator
===========================================

Classifies each newly arrived reading and computes its water depth
relative to the sensor's benchmark.  Runs synchronously in the
ingestion request path.

Per reading:
    1. Calibration — if the sensor is awaiting calibration, this reading
       becomes the benchmark: depth 0, valid, flag cleared, nothing else.
    2. Water depth — benchmark distance − current distance, reported as
       0 within the tolerance; None without a benchmark.
    3. Validity — z-score of the raw distance against the previous
       15 raw distances (StreamingDistanceZScore).  Too little history
       or no distance at all means valid.

Consistency:
    The calibration/benchmark/history lookups and the caller's write of
    the verdict are separate store operations, not a transaction.  Two
    readings of the same sensor ingested concurrently can race on which
    one counts as "previous", and both may be treated as the benchmark
    if they arrive while the calibration flag is still set.  This is an
    accepted eventual-consistency risk of the ingestion path.

Store errors are not caught here and reach the caller unchanged.
"""

import logging

from .anomaly import StreamingDistanceZScore
from .config import FloodConfig
from .models import (IngestionVerdict, RawReading, StreamingValidationResult,
                     WaterDepthResult)

logger = logging.getLogger("flood.validator")

BENCHMARK_REASON = "benchmark"
NO_DISTANCE_REASON = "No distance value, skipping validation"


class StreamingValidator:
    """
    Per-reading validity and depth engine.

    Usage:
        validator = StreamingValidator(store, FloodConfig())
        verdict = validator.validate(stored_reading)

    Attributes:
        store (ReadingStore): Calibration state and history lookups.
        config (FloodConfig): Window, threshold and tolerance.
        model (StreamingDistanceZScore): The rolling-window z-score model.
    """

    def __init__(self, store, config: FloodConfig = None):
        self.store = store
        self.config = config or FloodConfig()
        self.model = StreamingDistanceZScore(self.config.streaming_window,
                                             self.config.streaming_z_threshold)

    def compute_water_depth(self, sensor_id: str, current_mm) -> WaterDepthResult:
        """
        Benchmark-relative water depth for one distance.

        Positive depth means the surface is closer to the sensor than at
        calibration time, i.e. water has risen.

        Returns:
            WaterDepthResult; final_depth_mm is None when the sensor has
            no benchmark or the reading has no distance.
        """
        if current_mm is None:
            return WaterDepthResult(None, None, None, None)

        benchmark = self.store.latest_benchmark_distance(sensor_id)
        if benchmark is None:
            logger.debug(f"Sensor {sensor_id}: no benchmark, water depth unknown")
            return WaterDepthResult(None, current_mm, None, None)

        raw = benchmark - current_mm
        if abs(raw) <= self.config.water_depth_tolerance_mm:
            final = 0.0
        else:
            final = raw
        logger.debug(f"Sensor {sensor_id}: benchmark={benchmark} current={current_mm} "
                     f"raw={raw} final={final}")
        return WaterDepthResult(benchmark, current_mm, raw, final)

    def check_validity(self, reading: RawReading) -> StreamingValidationResult:
        """z-score validity of a non-benchmark reading."""
        if reading.distance_mm is None:
            return StreamingValidationResult(True, None, NO_DISTANCE_REASON)

        history = self.store.recent_distances(reading.sensor_id,
                                              self.config.streaming_window,
                                              exclude_reading_id=reading.reading_id)
        return self.model.evaluate(reading.distance_mm, history)

    def validate(self, reading: RawReading) -> IngestionVerdict:
        """
        Decide benchmark status, water depth and validity for one reading.

        The reading should already be stored (or carry the id it will be
        stored under) so it is excluded from its own history.

        Args:
            reading: The newly arrived reading.

        Returns:
            IngestionVerdict for the caller to write back.
        """
        sensor_id = reading.sensor_id

        if self.store.is_awaiting_calibration(sensor_id):
            self.store.clear_calibration(sensor_id)
            logger.info(f"Sensor {sensor_id}: benchmark captured at "
                        f"{reading.distance_mm} mm")
            depth = WaterDepthResult(reading.distance_mm, reading.distance_mm, 0.0, 0.0)
            validation = StreamingValidationResult(True, None, BENCHMARK_REASON)
            return IngestionVerdict(reading, True, depth, validation)

        depth = self.compute_water_depth(sensor_id, reading.distance_mm)
        validation = self.check_validity(reading)

        if not validation.is_valid:
            logger.warning(f"Sensor {sensor_id}: reading {reading.reading_id} "
                           f"flagged invalid: {validation.reason}")
        return IngestionVerdict(reading, False, depth, validation)
