"""
backend.flood — Signal Cleaning and Validation for Flood Sensors
=================================================================

Turns raw ultrasonic distance telemetry from street-mounted flood
sensors into trustworthy water depths and validity flags.

Architecture:
    Ultrasonic sensor → LoRaWAN → Network server webhook → Ingestion
                                                              ↓
                                        Streaming validation (per reading):
                                          1. Calibration / benchmark capture
                                          2. Benchmark-relative water depth
                                          3. Rolling 15-reading z-score
                                                              ↓
                                        is_valid + water_depth on the reading
                                        → charts, flood alerts (MQTT)

    Stored raw history ──────────────→ Batch cleaning (on demand):
                                          1. Night-median baseline
                                          2. Noise floor clamp
                                          3. Gradient spike filter
                                          4. Blip filter
                                          5. Box / plateau filter
                                          6. Batch z-score
                                                              ↓
                                        Clean readings dataset → dashboards

Modules:
    config        — Thresholds and the injectable FloodConfig
    exceptions    — Package error types
    models        — Reading and result dataclasses
    stats         — Median, mean, variances, guarded z-score
    anomaly       — Batch and streaming z-score models
    baseline      — Per-sensor baseline estimation
    filters       — Batch filter stages
    pipeline      — Batch cleaning pipeline, DataFrame conversion
    validator     — Streaming validator
    flood_status  — Depth → flood level classification
    store         — Reading store contract and in-memory store
    ingest        — Ingestion orchestration and MQTT alerts
    service       — Flask HTTP service
    clean         — Command-line batch cleaner
    utils         — Logging setup and timestamp helpers
"""

__version__ = "1.0.0"
__author__ = "Flood Monitoring IoT Team"
