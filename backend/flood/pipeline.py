"""
pipeline.py — Batch Cleaning Pipeline
======================================

Turns a snapshot of raw distance readings into cleaned depth records.

Flow:
    raw readings -> per-sensor baselines -> arena + sensor index
    -> noise floor -> gradient -> blip -> box -> batch z-score
    -> ProcessedReading list (one per input reading)

The pipeline is a pure transformation.  Fetching the snapshot and
storing the clean subset are the caller's job (see ingest.py and
service.py); nothing here blocks, retries or holds state between runs.
Sensors share no state, so a caller may split a snapshot by sensor and
run the pieces in parallel.
"""

import logging
from typing import Iterable

import pandas as pd

from . import config as defaults
from .baseline import BaselineEstimator
from .config import FloodConfig
from .filters import STAGES, build_sensor_index, initialize_arena
from .models import RawReading

logger = logging.getLogger("flood.pipeline")


class BatchCleaningPipeline:
    """
    Runs the ordered filter stages over raw readings.

    Usage:
        pipeline = BatchCleaningPipeline(FloodConfig())
        processed = pipeline.run(readings)
        clean = pipeline.clean(processed)

    Attributes:
        config (FloodConfig): Thresholds for every stage.
        estimator (BaselineEstimator): Per-sensor baseline source.
    """

    def __init__(self, config: FloodConfig = None):
        self.config = config or FloodConfig()
        self.estimator = BaselineEstimator(self.config)

    def run(self, readings: Iterable[RawReading]) -> list:
        """
        Process every reading of every sensor in the snapshot.

        Args:
            readings: Raw readings, any order, any number of sensors.

        Returns:
            ProcessedReading list sorted by timestamp, one per input.
        """
        readings = list(readings)
        if not readings:
            logger.info("No readings to process")
            return []

        baselines = self.estimator.estimate_all(readings)
        arena = initialize_arena(readings, baselines)
        index = build_sensor_index(arena)

        for name, stage in STAGES:
            arena = stage(arena, index, self.config)
            logger.debug(f"Stage {name}: {sum(1 for p in arena if p.nyc_valid)} "
                         f"of {len(arena)} records still valid")

        summary = self.summarize(arena)
        logger.info(
            f"Processed {summary['total']} readings from {len(index)} sensor(s): "
            f"clean={summary['clean']} filtered={summary['filtered']} "
            f"(gradient={summary['gradient']} blip={summary['blip']} "
            f"box={summary['box']} z={summary['z_anomaly']})"
        )
        return arena

    @staticmethod
    def clean(processed: Iterable) -> list:
        """Records that belong to the published clean dataset."""
        return [p for p in processed if p.is_clean]

    @staticmethod
    def summarize(processed: Iterable) -> dict:
        """
        Counts for a processed run.

        Returns:
            Dict with total, clean, filtered and per-flag counts.
        """
        processed = list(processed)
        clean = sum(1 for p in processed if p.is_clean)
        return {
            "total": len(processed),
            "clean": clean,
            "filtered": len(processed) - clean,
            "noise_floor": sum(1 for p in processed if p.noise_floor_applied),
            "gradient": sum(1 for p in processed if p.filtered_gradient),
            "blip": sum(1 for p in processed if p.filtered_blip),
            "box": sum(1 for p in processed if p.filtered_box),
            "z_anomaly": sum(1 for p in processed if p.z_anomaly),
        }


def to_dataframe(processed: Iterable) -> pd.DataFrame:
    """
    Convert processed readings to a DataFrame.

    Columns follow config.PROCESSED_COLUMNS.  Rejected depths become NaN.

    Args:
        processed: ProcessedReading records.

    Returns:
        DataFrame with one row per record.
    """
    rows = [p.to_dict() for p in processed]
    return pd.DataFrame(rows, columns=defaults.PROCESSED_COLUMNS)


def from_dataframe(df: pd.DataFrame) -> list:
    """
    Build raw readings from a DataFrame.

    Expects ``sensor_id``, ``distance_mm`` and either ``timestamp``
    (anything pandas can parse; naive times are taken as UTC) or
    ``timestamp_ms``.  An optional ``reading_id`` column is carried
    through.  Missing distances become None.

    Args:
        df: Raw readings table.

    Returns:
        List of RawReading.
    """
    if "timestamp_ms" in df.columns:
        millis = df["timestamp_ms"].astype("int64")
    else:
        ts = pd.to_datetime(df["timestamp"], utc=True)
        millis = (ts - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(milliseconds=1)

    distances = pd.to_numeric(df["distance_mm"], errors="coerce")
    ids = df["reading_id"] if "reading_id" in df.columns else [None] * len(df)

    readings = []
    for sensor_id, ms, dist, rid in zip(df["sensor_id"], millis, distances, ids):
        readings.append(RawReading(
            sensor_id=str(sensor_id),
            timestamp_ms=int(ms),
            distance_mm=None if pd.isna(dist) else float(dist),
            reading_id=None if rid is None or pd.isna(rid) else str(rid),
        ))
    return readings
