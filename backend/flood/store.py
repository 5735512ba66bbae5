"""
store.py — Reading Store Contract and In-Memory Implementation
===============================================================

The streaming validator needs three answers from storage: is the sensor
awaiting calibration, what was its latest benchmark distance, and what
were its most recent distances.  ``ReadingStore`` names that contract.
Any error a real store raises propagates through the validator
unchanged.

``InMemoryReadingStore`` implements the contract plus the bookkeeping
the ingestion service and the batch endpoint need (sensor registry,
flag write-back, clean dataset replacement).  It backs the Flask
service and the tests; swapping in a database-backed store only needs
the same methods.
"""

import logging
import threading
import uuid
from typing import Optional, Protocol

from .exceptions import UnknownSensorError
from .models import RawReading

logger = logging.getLogger("flood.store")


class ReadingStore(Protocol):
    def is_awaiting_calibration(self, sensor_id: str) -> bool: ...

    def clear_calibration(self, sensor_id: str) -> None: ...

    def latest_benchmark_distance(self, sensor_id: str) -> Optional[float]: ...

    def recent_distances(self, sensor_id: str, limit: int,
                         exclude_reading_id: Optional[str] = None) -> list: ...


class InMemoryReadingStore:
    """
    Process-local reading store.

    The lock keeps the internal lists consistent under a threaded
    server.  It does not make an ingestion sequence atomic: two readings
    for one sensor arriving together can still each see the other as
    missing from history (see validator.py).

    Attributes:
        _sensors (dict): sensor_id → {"name", "awaiting_calibration"}.
        _readings (list[dict]): Stored readings with their flags.
        _clean (dict): sensor_id → list of clean ProcessedReading.
    """

    def __init__(self):
        self._sensors = {}
        self._readings = []
        self._clean = {}
        self._lock = threading.Lock()

    # ── Sensor registry ───────────────────────────────────────────

    def register_sensor(self, sensor_id: str, name: str = None) -> None:
        with self._lock:
            if sensor_id in self._sensors:
                return
            self._sensors[sensor_id] = {
                "name": name or f"Sensor {sensor_id}",
                "awaiting_calibration": False,
            }
        logger.info(f"Registered sensor {sensor_id}")

    def has_sensor(self, sensor_id: str) -> bool:
        return sensor_id in self._sensors

    def set_awaiting_calibration(self, sensor_id: str) -> None:
        """
        Mark the sensor so that its next reading becomes the benchmark.

        Raises:
            UnknownSensorError: If the sensor is not registered.
        """
        with self._lock:
            if sensor_id not in self._sensors:
                raise UnknownSensorError(sensor_id)
            self._sensors[sensor_id]["awaiting_calibration"] = True

    def is_awaiting_calibration(self, sensor_id: str) -> bool:
        sensor = self._sensors.get(sensor_id)
        return bool(sensor and sensor["awaiting_calibration"])

    def clear_calibration(self, sensor_id: str) -> None:
        with self._lock:
            if sensor_id in self._sensors:
                self._sensors[sensor_id]["awaiting_calibration"] = False

    # ── Readings ──────────────────────────────────────────────────

    def add_reading(self, reading: RawReading) -> RawReading:
        """
        Store a raw reading, assigning an id if it has none.

        Returns:
            The reading as stored (with its reading_id).
        """
        if reading.reading_id is None:
            reading = RawReading(reading.sensor_id, reading.timestamp_ms,
                                 reading.distance_mm, uuid.uuid4().hex)
        with self._lock:
            self._readings.append({
                "reading": reading,
                "is_benchmark": False,
                "is_valid": False,
                "water_depth_mm": None,
                "z_score": None,
            })
        return reading

    def update_reading(self, reading_id: str, **flags) -> None:
        """Write computed flags (is_benchmark, is_valid, ...) onto a stored reading."""
        with self._lock:
            for row in self._readings:
                if row["reading"].reading_id == reading_id:
                    row.update(flags)
                    return
        raise KeyError(reading_id)

    def get_reading(self, reading_id: str) -> dict:
        for row in self._readings:
            if row["reading"].reading_id == reading_id:
                return dict(row)
        raise KeyError(reading_id)

    def _sensor_rows(self, sensor_id: str, newest_first: bool = False) -> list:
        rows = [row for row in self._readings if row["reading"].sensor_id == sensor_id]
        return sorted(rows, key=lambda row: row["reading"].timestamp_ms,
                      reverse=newest_first)

    def latest_benchmark_distance(self, sensor_id: str) -> Optional[float]:
        """
        Distance of the newest benchmark reading.

        Only the newest benchmark counts: if it carried no distance the
        sensor has no usable benchmark, older ones are not consulted.
        """
        for row in self._sensor_rows(sensor_id, newest_first=True):
            if row["is_benchmark"]:
                return row["reading"].distance_mm
        return None

    def recent_distances(self, sensor_id: str, limit: int,
                         exclude_reading_id: Optional[str] = None) -> list:
        """
        Most recent non-null distances for a sensor, newest first.

        Args:
            sensor_id: Sensor to look up.
            limit: Maximum number of distances returned.
            exclude_reading_id: Reading to leave out (the one being validated).
        """
        distances = []
        for row in self._sensor_rows(sensor_id, newest_first=True):
            reading = row["reading"]
            if reading.distance_mm is None or reading.reading_id == exclude_reading_id:
                continue
            distances.append(reading.distance_mm)
            if len(distances) >= limit:
                break
        return distances

    def raw_readings(self, sensor_id: str = None) -> list:
        """
        Readings with a distance, oldest first: the batch pipeline snapshot.

        Args:
            sensor_id: Restrict to one sensor.  None returns every sensor.
        """
        rows = sorted(self._readings, key=lambda row: row["reading"].timestamp_ms)
        return [row["reading"] for row in rows
                if row["reading"].distance_mm is not None
                and (sensor_id is None or row["reading"].sensor_id == sensor_id)]

    # ── Clean dataset ─────────────────────────────────────────────

    def replace_clean(self, clean: list, sensor_id: str = None) -> None:
        """
        Replace the clean dataset for one sensor, or for all sensors.

        A batch run is recomputed from scratch, so previous clean rows
        of the processed scope are dropped rather than merged.
        """
        by_sensor = {}
        for record in clean:
            by_sensor.setdefault(record.sensor_id, []).append(record)
        with self._lock:
            if sensor_id is None:
                self._clean = by_sensor
            else:
                self._clean[sensor_id] = by_sensor.get(sensor_id, [])

    def clean_readings(self, sensor_id: str) -> list:
        return list(self._clean.get(sensor_id, []))

    def counts(self) -> dict:
        return {
            "raw_readings": len(self._readings),
            "clean_readings": sum(len(v) for v in self._clean.values()),
        }
