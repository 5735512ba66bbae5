"""
models.py — Reading and Result Types
=====================================

Plain dataclasses passed between the baseline estimator, the batch
filter stages, and the streaming validator.  Records are frozen: each
filter stage produces new ProcessedReading instances via
``dataclasses.replace`` instead of mutating the previous stage's output.
"""

import math
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional

# Baseline sources
NIGHT_MEDIAN = "night-median"
ALL_MEDIAN = "all-median"
SELF = "self"


@dataclass(frozen=True)
class RawReading:
    sensor_id: str
    timestamp_ms: int
    distance_mm: Optional[float]   # None when the uplink carried no distance
    reading_id: Optional[str] = None

    @property
    def timestamp(self) -> datetime:
        """Timestamp as an aware UTC datetime."""
        return datetime.fromtimestamp(self.timestamp_ms / 1000.0, tz=timezone.utc)


@dataclass(frozen=True)
class Baseline:
    sensor_id: str
    value_mm: float
    source: str   # NIGHT_MEDIAN | ALL_MEDIAN | SELF


@dataclass(frozen=True)
class ProcessedReading:
    sensor_id: str
    timestamp_ms: int
    distance_mm: Optional[float]
    reading_id: Optional[str]
    baseline_mm: Optional[float]
    depth_mm: Optional[float]      # None once rejected by gradient/blip/box
    nyc_valid: bool = True
    noise_floor_applied: bool = False
    filtered_gradient: bool = False
    filtered_blip: bool = False
    filtered_box: bool = False
    gradient_rate_mm_per_min: Optional[float] = None
    z_score: Optional[float] = None
    z_anomaly: bool = False

    @property
    def timestamp_iso(self) -> str:
        ts = datetime.fromtimestamp(self.timestamp_ms / 1000.0, tz=timezone.utc)
        return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @property
    def is_clean(self) -> bool:
        """True if the record belongs to the published clean dataset."""
        return self.nyc_valid and not self.z_anomaly

    @property
    def accepted(self) -> bool:
        """Still valid with a usable depth after the stages run so far."""
        return self.nyc_valid and self.depth_mm is not None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp_iso"] = self.timestamp_iso
        return data


@dataclass(frozen=True)
class StreamingValidationResult:
    is_valid: bool
    z_score: Optional[float]
    reason: str


@dataclass(frozen=True)
class WaterDepthResult:
    benchmark_mm: Optional[float]
    current_mm: Optional[float]
    raw_depth_mm: Optional[float]
    final_depth_mm: Optional[float]   # None when no benchmark exists


@dataclass(frozen=True)
class IngestionVerdict:
    """Everything the validator decides about one incoming reading."""

    reading: RawReading
    is_benchmark: bool
    water_depth: WaterDepthResult
    validation: StreamingValidationResult

    def to_dict(self) -> dict:
        validation = asdict(self.validation)
        # JSON has no infinity; a flat history reports its z-score as null
        z = validation["z_score"]
        if z is not None and not math.isfinite(z):
            validation["z_score"] = None
        return {
            "sensor_id": self.reading.sensor_id,
            "reading_id": self.reading.reading_id,
            "distance_mm": self.reading.distance_mm,
            "is_benchmark": self.is_benchmark,
            "water_depth": asdict(self.water_depth),
            "validation": validation,
        }
