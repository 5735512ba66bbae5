from __future__ import annotations

from datetime import datetime, timezone

from backend.flood.baseline import BaselineEstimator, is_night
from backend.flood.config import FloodConfig
from backend.flood.models import RawReading, NIGHT_MEDIAN, ALL_MEDIAN, SELF


def _ms(hour: int, minute: int = 0) -> int:
    return int(datetime(2024, 6, 1, hour, minute, tzinfo=timezone.utc).timestamp() * 1000)


def test_is_night_wraps_midnight() -> None:
    assert is_night(22, 22, 5)
    assert is_night(23, 22, 5)
    assert is_night(0, 22, 5)
    assert is_night(4, 22, 5)
    assert not is_night(5, 22, 5)
    assert not is_night(21, 22, 5)


def test_is_night_non_wrapping_window() -> None:
    assert is_night(2, 1, 4)
    assert not is_night(4, 1, 4)


def test_night_median_preferred() -> None:
    readings = [
        RawReading("s1", _ms(12), 500.0),
        RawReading("s1", _ms(13), 600.0),
        RawReading("s1", _ms(23), 1000.0),
        RawReading("s1", _ms(23, 30), 1010.0),
        RawReading("s1", _ms(3), 1020.0),
    ]
    baseline = BaselineEstimator().estimate("s1", readings)
    assert baseline.value_mm == 1010.0
    assert baseline.source == NIGHT_MEDIAN


def test_all_median_without_night_readings() -> None:
    readings = [RawReading("s1", _ms(h), d) for h, d in [(10, 900.0), (11, 950.0), (12, 1000.0), (13, 980.0)]]
    baseline = BaselineEstimator().estimate("s1", readings)
    assert baseline.value_mm == 965.0
    assert baseline.source == ALL_MEDIAN


def test_missing_distances_are_ignored() -> None:
    readings = [RawReading("s1", _ms(23), None), RawReading("s1", _ms(12), 800.0)]
    baseline = BaselineEstimator().estimate("s1", readings)
    assert baseline.value_mm == 800.0
    assert baseline.source == ALL_MEDIAN


def test_no_distances_falls_back_to_self() -> None:
    estimator = BaselineEstimator()
    assert estimator.estimate("s1", [RawReading("s1", _ms(23), None)]) is None

    reading = RawReading("s2", _ms(12), 750.0)
    baseline = BaselineEstimator.for_reading(reading, {})
    assert baseline.value_mm == 750.0
    assert baseline.source == SELF


def test_estimate_all_is_per_sensor() -> None:
    readings = [
        RawReading("a", _ms(23), 1000.0),
        RawReading("b", _ms(23), 2000.0),
        RawReading("a", _ms(1), 1002.0),
    ]
    baselines = BaselineEstimator().estimate_all(readings)
    assert baselines["a"].value_mm == 1001.0
    assert baselines["b"].value_mm == 2000.0


def test_configured_night_window() -> None:
    config = FloodConfig(night_start_hour=10, night_end_hour=12)
    readings = [RawReading("s1", _ms(11), 700.0), RawReading("s1", _ms(23), 1000.0)]
    baseline = BaselineEstimator(config).estimate("s1", readings)
    assert baseline.value_mm == 700.0
    assert baseline.source == NIGHT_MEDIAN
