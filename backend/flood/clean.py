"""
clean.py — Command-Line Batch Cleaner
======================================

Runs the batch cleaning pipeline over a CSV export of raw readings and
writes one processed row per reading.

Input columns: sensor_id, timestamp (or timestamp_ms), distance_mm,
optionally reading_id.

Usage:
    python -m backend.flood.clean raw.csv processed.csv
    python -m backend.flood.clean raw.csv processed.csv --clean-only
"""

import argparse
import json
import logging
import sys

import pandas as pd

from .config import FloodConfig
from .pipeline import BatchCleaningPipeline, from_dataframe, to_dataframe
from .utils import setup_logging

logger = logging.getLogger("flood.clean")


def run(input_path: str, output_path: str, clean_only: bool = False) -> dict:
    """
    Clean a CSV of raw readings into a CSV of processed readings.

    Args:
        input_path: Raw readings CSV.
        output_path: Destination CSV.
        clean_only: Write only the clean subset instead of every record.

    Returns:
        Run summary from BatchCleaningPipeline.summarize().
    """
    raw = from_dataframe(pd.read_csv(input_path))
    logger.info(f"Loaded {len(raw)} raw readings from {input_path}")

    pipeline = BatchCleaningPipeline(FloodConfig.from_env())
    processed = pipeline.run(raw)
    rows = pipeline.clean(processed) if clean_only else processed

    to_dataframe(rows).to_csv(output_path, index=False)
    logger.info(f"Wrote {len(rows)} rows to {output_path}")
    return pipeline.summarize(processed)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Clean raw flood sensor readings.")
    parser.add_argument("input", help="raw readings CSV")
    parser.add_argument("output", help="processed readings CSV")
    parser.add_argument("--clean-only", action="store_true",
                        help="write only readings in the clean dataset")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    summary = run(args.input, args.output, clean_only=args.clean_only)
    print(json.dumps(summary, indent=2))
    return 0


# ── CLI entry point ──────────────────────────────────────────────
if __name__ == "__main__":
    sys.exit(main())
