"""
config.py — Flood Cleaning Configuration Constants
===================================================

Centralizes every threshold used by the batch cleaning pipeline and the
streaming validator.  Tuning these values adjusts how aggressively the
system rejects spikes, blips and parked-object plateaus, and how
sensitive the per-reading validity check is.

Sensor context:
- Ultrasonic distance sensors mounted above the street, pointing down
- Distance in millimetres from the sensor face to the nearest surface
- Uplinks arrive every few minutes via LoRaWAN → webhook → ingestion
- Depth = baseline distance − current distance (positive = water rising)

The module-level constants are the defaults.  Engines never read them
directly; they receive a ``FloodConfig`` in their constructor, which is
built from these constants (optionally overridden from the environment).
"""

import os
from dataclasses import dataclass, fields

from .exceptions import ConfigError

# ═══════════════════════════════════════════════════════════════════
# BASELINE ESTIMATION
# ═══════════════════════════════════════════════════════════════════

# Night window in UTC hours, [start, end).  Streets are quiet at night:
# fewer parked cars and pedestrians under the sensor, so the median
# night distance is the best estimate of the dry-street reference.
NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 5

# ═══════════════════════════════════════════════════════════════════
# BATCH CLEANING FILTERS
# ═══════════════════════════════════════════════════════════════════

# Depths below this (mm) are clamped to 0.  Ultrasonic jitter on a dry
# street is a few millimetres; anything under 10 mm is not water.
NOISE_FLOOR_MM = 10.0

# Maximum plausible rate of depth change between accepted points.
# 254 mm/min = 10 in/min; water does not rise faster than that.
GRADIENT_THRESHOLD_MM_PER_MIN = 254.0

# Blip: D1 → D2 must rise by more than this (mm) to be considered...
BLIP_MIN_DELTA_MM = 2.0
# ...and D3 must come back within this fraction of the rise.
BLIP_METRIC_THRESHOLD = 0.1

# Box / plateau: consecutive points within this relative distance of
# the first elevated point form a flat plateau (a parked vehicle).
BOX_METRIC_THRESHOLD = 0.1

# |z| above which a cleaned depth is a batch outlier (sample std).
BATCH_Z_THRESHOLD = 2.0

# ═══════════════════════════════════════════════════════════════════
# STREAMING VALIDATION
# ═══════════════════════════════════════════════════════════════════

# Number of prior raw distances the per-reading check looks at.
STREAMING_WINDOW = 15

# z above which an incoming distance is invalid (population std).
# The boundary is inclusive: z == 3.0 is still valid.
STREAMING_Z_THRESHOLD = 3.0

# Benchmark-relative depths within ± this (mm) are reported as 0.
WATER_DEPTH_TOLERANCE_MM = 10.0

# ═══════════════════════════════════════════════════════════════════
# FLOOD LEVELS (mm of water depth)
# ═══════════════════════════════════════════════════════════════════

FLOOD_LEVEL_LOW = 10.0
FLOOD_LEVEL_MODERATE = 50.0
FLOOD_LEVEL_MAJOR = 150.0
FLOOD_LEVEL_EXTREME = 300.0

# ═══════════════════════════════════════════════════════════════════
# MQTT ALERT PUBLISHING
# ═══════════════════════════════════════════════════════════════════

# Topic on which flood alerts are published for validated readings at
# moderate flooding or above.
FLOOD_ALERT_TOPIC = os.environ.get("FLOOD_ALERT_TOPIC", "flood/alerts")

MQTT_BROKER_HOST = os.environ.get("MQTT_BROKER_HOST", "localhost")
MQTT_BROKER_PORT = int(os.environ.get("MQTT_BROKER_PORT", "1883"))

# ═══════════════════════════════════════════════════════════════════
# SERVICE / LOGGING
# ═══════════════════════════════════════════════════════════════════

SERVICE_PORT = int(os.environ.get("FLOOD_SERVICE_PORT", "5060"))

# Log level for the flood package (DEBUG, INFO, WARNING, ERROR, CRITICAL)
LOG_LEVEL = os.environ.get("FLOOD_LOG_LEVEL", "INFO")

# Columns written by the command-line cleaner, in order.
PROCESSED_COLUMNS = [
    "sensor_id",
    "reading_id",
    "timestamp_iso",
    "distance_mm",
    "baseline_mm",
    "depth_mm",
    "nyc_valid",
    "noise_floor_applied",
    "filtered_gradient",
    "filtered_blip",
    "filtered_box",
    "gradient_rate_mm_per_min",
    "z_score",
    "z_anomaly",
]


@dataclass(frozen=True)
class FloodConfig:
    """
    Tunable thresholds injected into the batch pipeline and the
    streaming validator.

    Every field defaults to the module constant of the same (upper-case)
    name, so ``FloodConfig()`` reproduces the production settings.
    """

    noise_floor_mm: float = NOISE_FLOOR_MM
    gradient_threshold_mm_per_min: float = GRADIENT_THRESHOLD_MM_PER_MIN
    blip_min_delta_mm: float = BLIP_MIN_DELTA_MM
    blip_metric_threshold: float = BLIP_METRIC_THRESHOLD
    box_metric_threshold: float = BOX_METRIC_THRESHOLD
    batch_z_threshold: float = BATCH_Z_THRESHOLD
    streaming_window: int = STREAMING_WINDOW
    streaming_z_threshold: float = STREAMING_Z_THRESHOLD
    water_depth_tolerance_mm: float = WATER_DEPTH_TOLERANCE_MM
    night_start_hour: int = NIGHT_START_HOUR
    night_end_hour: int = NIGHT_END_HOUR

    def __post_init__(self):
        for name in ("gradient_threshold_mm_per_min", "blip_metric_threshold",
                     "box_metric_threshold", "batch_z_threshold",
                     "streaming_z_threshold"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("noise_floor_mm", "blip_min_delta_mm",
                     "water_depth_tolerance_mm"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.streaming_window < 1:
            raise ConfigError(
                f"streaming_window must be at least 1, got {self.streaming_window}"
            )
        for name in ("night_start_hour", "night_end_hour"):
            if not 0 <= getattr(self, name) <= 23:
                raise ConfigError(f"{name} must be an hour in 0-23, got {getattr(self, name)}")

    @classmethod
    def from_env(cls, environ=None) -> "FloodConfig":
        """
        Build a config, overriding any field from ``FLOOD_<FIELD>``.

        ``FLOOD_NOISE_FLOOR_MM=5`` overrides ``noise_floor_mm`` and so on.

        Args:
            environ: Mapping to read from.  Defaults to os.environ.

        Returns:
            A validated FloodConfig.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(f"FLOOD_{f.name.upper()}")
            if raw is None:
                continue
            try:
                overrides[f.name] = type(f.default)(raw)
            except ValueError as e:
                raise ConfigError(f"Invalid value for FLOOD_{f.name.upper()}: {raw!r}") from e
        return cls(**overrides)
