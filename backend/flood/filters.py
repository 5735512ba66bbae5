"""
filters.py — Batch Cleaning Filter Stages
==========================================

Each stage is a pure function::

    stage(arena, index, config) -> new arena

``arena`` is the list of ProcessedReading for every sensor in the run,
sorted by timestamp.  ``index`` maps sensor_id to the chronological list
of arena positions belonging to that sensor, so every stage walks a
sensor's points in order without copying per-sensor arrays.  A stage
never mutates its input; it returns a copy of the arena in which the
records it changed have been replaced.

Stages, in the order the pipeline runs them:
    1. initialize_arena    — baseline − distance, everything valid
    2. apply_noise_floor   — clamp small/negative depths to 0 (stays valid)
    3. apply_gradient      — reject implausibly fast depth changes
    4. apply_blip          — reject 3-point spike-and-return patterns
    5. apply_box           — reject flat plateaus that start from 0
    6. apply_batch_zscore  — score the survivors, flag |z| > threshold

Each stage reads the validity left by the previous one.
"""

import logging
from dataclasses import replace
from typing import Iterable

from .anomaly import BatchDepthZScore
from .baseline import BaselineEstimator
from .config import FloodConfig
from .models import ProcessedReading, RawReading

logger = logging.getLogger("flood.filters")


# ── Arena construction ──────────────────────────────────────────

def build_sensor_index(arena: list) -> dict:
    """
    Group arena positions by sensor, each list in timestamp order.

    The arena is already sorted by timestamp, so appending in arena
    order keeps every sensor's list chronological.
    """
    index = {}
    for pos, record in enumerate(arena):
        index.setdefault(record.sensor_id, []).append(pos)
    return index


def initialize_arena(readings: Iterable[RawReading], baselines: dict) -> list:
    """
    Stage 1: turn raw readings into processed records.

    Readings are sorted by timestamp (stable, so equal timestamps keep
    their input order).  depth = baseline − distance and every record
    starts valid.  A reading without a distance passes through with no
    depth and is not valid.

    Args:
        readings: Raw readings for one or more sensors.
        baselines: sensor_id → Baseline from BaselineEstimator.

    Returns:
        Sorted list of ProcessedReading.
    """
    arena = []
    for r in sorted(readings, key=lambda r: r.timestamp_ms):
        baseline = BaselineEstimator.for_reading(r, baselines)
        if r.distance_mm is None:
            depth, valid = None, False
        else:
            depth, valid = baseline.value_mm - r.distance_mm, True
        arena.append(ProcessedReading(
            sensor_id=r.sensor_id,
            timestamp_ms=r.timestamp_ms,
            distance_mm=r.distance_mm,
            reading_id=r.reading_id,
            baseline_mm=baseline.value_mm,
            depth_mm=depth,
            nyc_valid=valid,
        ))
    return arena


# ── Stage 2: noise floor ────────────────────────────────────────

def apply_noise_floor(arena: list, index: dict, config: FloodConfig) -> list:
    """
    Clamp depths below the noise floor to 0.

    This is not a rejection: the record stays valid.  Negative depths
    (water surface farther than baseline) are clamped too.
    """
    out = list(arena)
    clamped = 0
    for pos, record in enumerate(out):
        if record.depth_mm is not None and record.depth_mm < config.noise_floor_mm:
            out[pos] = replace(record, depth_mm=0.0, noise_floor_applied=True)
            clamped += 1
    logger.debug(f"Noise floor: clamped {clamped} depths below {config.noise_floor_mm} mm")
    return out


# ── Stage 3: gradient spike ─────────────────────────────────────

def apply_gradient(arena: list, index: dict, config: FloodConfig) -> list:
    """
    Reject points whose depth changed too fast since the last accepted point.

    Each point is compared with the most recently *accepted* earlier
    point of the same sensor, not with its raw predecessor, so one
    rejected spike cannot cause the following good point to be rejected
    as well.  The observed rate is recorded whenever it can be computed
    (positive time gap).
    """
    out = list(arena)
    threshold = config.gradient_threshold_mm_per_min
    rejected = 0

    for sensor_id, positions in index.items():
        last_accepted = None
        for pos in positions:
            current = out[pos]
            if last_accepted is not None and current.depth_mm is not None:
                prev = out[last_accepted]
                dt_min = (current.timestamp_ms - prev.timestamp_ms) / 60000.0
                if dt_min > 0:
                    rate = abs(current.depth_mm - prev.depth_mm) / dt_min
                    if rate > threshold:
                        current = replace(current, gradient_rate_mm_per_min=rate,
                                          filtered_gradient=True, nyc_valid=False,
                                          depth_mm=None)
                        rejected += 1
                        logger.debug(f"Sensor {sensor_id}: gradient {rate:.1f} mm/min "
                                     f"at {current.timestamp_iso}")
                    else:
                        current = replace(current, gradient_rate_mm_per_min=rate)
                    out[pos] = current
            if current.accepted:
                last_accepted = pos

    logger.debug(f"Gradient: rejected {rejected} points above {threshold} mm/min")
    return out


# ── Stage 4: blip ───────────────────────────────────────────────

def apply_blip(arena: list, index: dict, config: FloodConfig) -> list:
    """
    Reject the middle point of a rise-and-return triplet (D1, D2, D3).

    delta = D2 − D1 must exceed the minimum rise; the middle point is a
    blip when |D3 − D1| / delta is below the metric threshold, i.e. D3
    fell back almost to D1.

    Triplets are consecutive positions of the sensor's full chronological
    list.  A triplet touching an already rejected point is skipped; the
    window is not re-closed around the gap.
    """
    out = list(arena)
    rejected = 0

    for sensor_id, positions in index.items():
        for k in range(2, len(positions)):
            p1, p2, p3 = positions[k - 2], positions[k - 1], positions[k]
            r1, r2, r3 = out[p1], out[p2], out[p3]
            if not (r1.accepted and r2.accepted and r3.accepted):
                continue

            delta = r2.depth_mm - r1.depth_mm
            if delta <= config.blip_min_delta_mm:
                continue

            metric = abs(r3.depth_mm - r1.depth_mm) / delta
            if metric < config.blip_metric_threshold:
                out[p2] = replace(r2, filtered_blip=True, nyc_valid=False, depth_mm=None)
                rejected += 1
                logger.debug(f"Sensor {sensor_id}: blip at {r2.timestamp_iso} "
                             f"(delta={delta:.1f}, metric={metric:.3f})")

    logger.debug(f"Blip: rejected {rejected} points")
    return out


# ── Stage 5: box / plateau ──────────────────────────────────────

def apply_box(arena: list, index: dict, config: FloodConfig) -> list:
    """
    Reject flat plateaus that jump up from a zero depth.

    A car parked under the sensor looks like water that appears at once
    and then does not move.  Starting from a valid zero-depth point D1
    followed by a valid positive point D2, the plateau extends while the
    next valid point stays within the box threshold of D2 (relative).
    A plateau of two or more points (D2 onward) is rejected and scanning
    resumes after it.
    """
    out = list(arena)
    threshold = config.box_metric_threshold
    rejected = 0

    for sensor_id, positions in index.items():
        n = len(positions)
        k = 0
        while k < n - 2:
            first = out[positions[k]]
            if first.depth_mm != 0 or not first.nyc_valid:
                k += 1
                continue

            second = out[positions[k + 1]]
            if second.depth_mm is None or second.depth_mm <= 0 or not second.nyc_valid:
                k += 1
                continue

            anchor = second.depth_mm
            group = [positions[k + 1]]
            j = k + 2
            while j < n:
                candidate = out[positions[j]]
                if not candidate.accepted:
                    break
                if abs(candidate.depth_mm - anchor) / anchor >= threshold:
                    break
                group.append(positions[j])
                j += 1

            if len(group) > 1:
                for pos in group:
                    out[pos] = replace(out[pos], filtered_box=True, nyc_valid=False,
                                       depth_mm=None)
                rejected += len(group)
                logger.debug(f"Sensor {sensor_id}: plateau of {len(group)} points "
                             f"at ~{anchor:.1f} mm from {second.timestamp_iso}")
                k = j
            else:
                k += 1

    logger.debug(f"Box: rejected {rejected} points")
    return out


# ── Stage 6: batch z-score ──────────────────────────────────────

def apply_batch_zscore(arena: list, index: dict, config: FloodConfig) -> list:
    """
    Score every surviving depth against its sensor's mean and sample std.

    Sensors with fewer than two surviving depths, or with zero spread,
    are left unscored.
    """
    out = list(arena)
    model = BatchDepthZScore(config.batch_z_threshold)
    flagged = 0

    for sensor_id, positions in index.items():
        survivors = [pos for pos in positions if out[pos].accepted]
        fitted = model.fit([out[pos].depth_mm for pos in survivors])
        if fitted is None:
            logger.debug(f"Sensor {sensor_id}: z-score skipped "
                         f"({len(survivors)} valid depths)")
            continue

        mu, std = fitted
        for pos in survivors:
            z = model.score(out[pos].depth_mm, mu, std)
            anomaly = model.is_anomaly(z)
            out[pos] = replace(out[pos], z_score=z, z_anomaly=anomaly)
            flagged += anomaly

    logger.debug(f"Batch z-score: flagged {flagged} outliers above |z| {model.threshold}")
    return out


# Stages after initialization, in execution order.
STAGES = (
    ("noise_floor", apply_noise_floor),
    ("gradient", apply_gradient),
    ("blip", apply_blip),
    ("box", apply_box),
    ("z_score", apply_batch_zscore),
)
