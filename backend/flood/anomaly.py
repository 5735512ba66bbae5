"""
anomaly.py — z-Score Anomaly Models
====================================

Two independent z-score models, deliberately kept apart:

BatchDepthZScore
    Runs over every cleaned depth a sensor has, after the filter
    stages.  Sample standard deviation (n − 1), signed score,
    |z| > 2.0 is an outlier.  Feeds the published clean dataset.

StreamingDistanceZScore
    Runs once per incoming reading against the previous 15 raw
    distances.  Population standard deviation (n), absolute score,
    z <= 3.0 is valid.  Feeds the per-reading is_valid flag used by
    charts and alerting.

The two see different signals (depth vs. raw distance) and answer to
different consumers; they are not reconciled.
"""

import logging
import math
from typing import Optional

from . import stats
from .models import StreamingValidationResult

logger = logging.getLogger("flood.anomaly")


class BatchDepthZScore:
    """
    Whole-series depth outlier model for the batch pipeline.

    Attributes:
        threshold (float): |z| strictly above this is an anomaly.
    """

    name = "batch-depth-sample-std"

    def __init__(self, threshold: float):
        self.threshold = threshold

    def fit(self, depths: list) -> Optional[tuple]:
        """
        Compute (mean, sample std) for a sensor's cleaned depths.

        Returns:
            (mean, std), or None when there are fewer than two depths or
            the spread is zero / non-finite, in which case no point of
            the sensor is scored.
        """
        if len(depths) < 2:
            return None
        mu = stats.mean(depths)
        std = math.sqrt(stats.sample_variance(depths))
        if not math.isfinite(std) or std == 0:
            return None
        return mu, std

    @staticmethod
    def score(depth: float, mu: float, std: float) -> float:
        """Signed z-score of one depth."""
        return (depth - mu) / std

    def is_anomaly(self, z: float) -> bool:
        return abs(z) > self.threshold


class StreamingDistanceZScore:
    """
    Rolling-window raw-distance model for the streaming validator.

    Attributes:
        window (int): Number of prior distances required and used.
        threshold (float): z above this is invalid; equality is valid.
    """

    name = "streaming-distance-population-std"

    def __init__(self, window: int, threshold: float):
        self.window = window
        self.threshold = threshold

    def evaluate(self, current: float, history: list) -> StreamingValidationResult:
        """
        Classify ``current`` against its most-recent-first history.

        Fewer than ``window`` prior distances is not enough to judge;
        the reading is accepted rather than blocked.

        Args:
            current: Incoming raw distance in mm.
            history: Prior raw distances, most recent first.

        Returns:
            StreamingValidationResult with the absolute z-score.
        """
        count = len(history)
        if count < self.window:
            reason = (f"Insufficient history ({count}/{self.window}), "
                      f"marking as valid")
            logger.debug(reason)
            return StreamingValidationResult(is_valid=True, z_score=None, reason=reason)

        values = list(history)[: self.window]
        mu = stats.mean(values)
        std = math.sqrt(stats.population_variance(values))
        z = stats.z_score(current, mu, std)

        if z <= self.threshold:
            reason = f"Z-score {z:.2f} <= {self.threshold}, valid reading"
            return StreamingValidationResult(is_valid=True, z_score=z, reason=reason)

        reason = f"Z-score {z:.2f} > {self.threshold}, anomaly detected"
        logger.info(f"{reason} (current={current}, mean={mu:.1f}, std={std:.2f})")
        return StreamingValidationResult(is_valid=False, z_score=z, reason=reason)
