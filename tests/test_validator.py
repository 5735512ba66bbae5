from __future__ import annotations

import math

import pytest

from backend.flood.config import FloodConfig
from backend.flood.models import RawReading
from backend.flood.store import InMemoryReadingStore
from backend.flood.validator import BENCHMARK_REASON, StreamingValidator

START_MS = 1_717_243_200_000

# population mean 100, population std exactly 2
HISTORY = [103.0] * 3 + [97.0] * 3 + [101.0] * 3 + [99.0] * 3 + [100.0] * 3


@pytest.fixture
def store() -> InMemoryReadingStore:
    store = InMemoryReadingStore()
    store.register_sensor("s1")
    return store


def _add(store, distance, minute: int, sensor: str = "s1") -> RawReading:
    return store.add_reading(RawReading(sensor, START_MS + minute * 60_000, distance))


def _seed(store, distances) -> None:
    for i, d in enumerate(distances):
        _add(store, d, i)


def test_benchmark_reading_is_valid_with_zero_depth(store) -> None:
    _seed(store, [1000.0] * 15)
    store.set_awaiting_calibration("s1")
    reading = _add(store, 5.0, 100)

    verdict = StreamingValidator(store).validate(reading)

    assert verdict.is_benchmark
    assert verdict.validation.is_valid
    assert verdict.validation.reason == BENCHMARK_REASON
    assert verdict.water_depth.final_depth_mm == 0
    assert not store.is_awaiting_calibration("s1")


def test_water_depth_within_tolerance_is_zero(store) -> None:
    benchmark = _add(store, 500.0, 0)
    store.update_reading(benchmark.reading_id, is_benchmark=True)
    validator = StreamingValidator(store)

    depth = validator.compute_water_depth("s1", 495.0)
    assert depth.raw_depth_mm == 5.0
    assert depth.final_depth_mm == 0

    depth = validator.compute_water_depth("s1", 510.0)
    assert depth.final_depth_mm == 0

    depth = validator.compute_water_depth("s1", 400.0)
    assert depth.benchmark_mm == 500.0
    assert depth.final_depth_mm == 100.0


def test_latest_benchmark_wins(store) -> None:
    old = _add(store, 500.0, 0)
    new = _add(store, 800.0, 5)
    store.update_reading(old.reading_id, is_benchmark=True)
    store.update_reading(new.reading_id, is_benchmark=True)
    depth = StreamingValidator(store).compute_water_depth("s1", 700.0)
    assert depth.final_depth_mm == 100.0


def test_newest_benchmark_without_distance_means_unknown_depth(store) -> None:
    old = _add(store, 500.0, 0)
    new = _add(store, None, 5)
    store.update_reading(old.reading_id, is_benchmark=True)
    store.update_reading(new.reading_id, is_benchmark=True)
    depth = StreamingValidator(store).compute_water_depth("s1", 400.0)
    assert depth.benchmark_mm is None
    assert depth.final_depth_mm is None


def test_no_benchmark_means_unknown_depth(store) -> None:
    reading = _add(store, 400.0, 0)
    verdict = StreamingValidator(store).validate(reading)
    assert verdict.water_depth.final_depth_mm is None
    assert not verdict.is_benchmark


def test_insufficient_history_is_valid(store) -> None:
    _seed(store, [100.0] * 14)
    reading = _add(store, 5000.0, 60)
    result = StreamingValidator(store).validate(reading).validation
    assert result.is_valid
    assert result.z_score is None
    assert "14/15" in result.reason


def test_z_equal_to_threshold_is_valid(store) -> None:
    _seed(store, HISTORY)
    reading = _add(store, 106.0, 60)
    result = StreamingValidator(store).validate(reading).validation
    assert result.z_score == 3.0
    assert result.is_valid


def test_z_above_threshold_is_invalid(store) -> None:
    _seed(store, HISTORY)
    reading = _add(store, 107.0, 60)
    result = StreamingValidator(store).validate(reading).validation
    assert result.z_score == pytest.approx(3.5)
    assert not result.is_valid


def test_only_most_recent_window_is_used(store) -> None:
    _seed(store, [5000.0] * 10 + HISTORY)
    reading = _add(store, 106.0, 60)
    assert StreamingValidator(store).validate(reading).validation.is_valid


def test_flat_history_guards(store) -> None:
    _seed(store, [1000.0] * 15)
    validator = StreamingValidator(store)

    same = validator.validate(_add(store, 1000.0, 60)).validation
    assert same.z_score == 0
    assert same.is_valid

    off = validator.validate(_add(store, 1001.0, 61)).validation
    assert off.z_score == math.inf
    assert not off.is_valid


def test_missing_distance_skips_validation(store) -> None:
    _seed(store, HISTORY)
    reading = _add(store, None, 60)
    verdict = StreamingValidator(store).validate(reading)
    assert verdict.validation.is_valid
    assert verdict.validation.z_score is None
    assert verdict.water_depth.final_depth_mm is None


def test_missing_distances_are_not_history(store) -> None:
    _seed(store, [None] * 5 + [100.0] * 14)
    reading = _add(store, 100.0, 60)
    assert StreamingValidator(store).validate(reading).validation.z_score is None


def test_window_comes_from_config(store) -> None:
    _seed(store, [100.0, 102.0, 98.0])
    reading = _add(store, 100.0, 60)
    config = FloodConfig(streaming_window=3)
    result = StreamingValidator(store, config).validate(reading).validation
    assert result.z_score == 0
    assert result.is_valid


class _FailingStore:
    def is_awaiting_calibration(self, sensor_id):
        return False

    def clear_calibration(self, sensor_id):
        pass

    def latest_benchmark_distance(self, sensor_id):
        return None

    def recent_distances(self, sensor_id, limit, exclude_reading_id=None):
        raise ConnectionError("store unavailable")


def test_store_errors_propagate() -> None:
    validator = StreamingValidator(_FailingStore())
    with pytest.raises(ConnectionError):
        validator.validate(RawReading("s1", START_MS, 100.0, "r1"))
