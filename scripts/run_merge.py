"""
run_merge.py  -  Merge raw station telemetry with weather and holidays.

USAGE examples
--------------
# one shard per station, settings from the environment / .env
python -m scripts.run_merge

# explicit inputs, 8 round-robin chunks, abort on missing weather
python -m scripts.run_merge --raw-dir ./velov_datas --weather ./weather.json \
    --holidays ./holidays.json --out ./merged_data --partition round_robin --shards 8 --strict
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from core.config import PARTITION_SCHEMES, load_settings
from core.exceptions import ForecastError, MissingWeatherCoverageError
from pipeline.merger import MergePipeline


def cli(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Build the partitioned feature store")
    ap.add_argument("--raw-dir", type=Path, help="directory of raw telemetry JSON shards")
    ap.add_argument("--weather", type=Path, help="weather archive JSON")
    ap.add_argument("--holidays", type=Path, help="holiday ranges JSON")
    ap.add_argument("--out", type=Path, help="output feature store directory")
    ap.add_argument("--partition", choices=PARTITION_SCHEMES)
    ap.add_argument("--shards", type=int, help="chunk count for round_robin")
    ap.add_argument("--strict", action="store_true", help="abort on missing weather coverage")
    return ap.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = cli(argv)
    try:
        settings = load_settings()
        overrides = {
            "raw_dir": args.raw_dir,
            "weather_path": args.weather,
            "holidays_path": args.holidays,
            "merged_dir": args.out,
            "partition": args.partition,
            "shard_count": args.shards,
            "strict_weather": True if args.strict else None,
        }
        settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    except ForecastError as exc:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
        logging.error("Invalid configuration: %s", exc.message)
        return 1

    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        report = MergePipeline.from_settings(settings).run()
    except MissingWeatherCoverageError as exc:
        logging.error("Merge aborted (strict weather): %s", exc.message)
        return 1
    except ForecastError as exc:
        logging.error("Merge failed: %s", exc.message)
        return 1

    stats = report.stats
    logging.info(
        "files=%s failed=%s records=%s inconsistent=%s malformed=%s no_weather=%s duplicates=%s",
        stats.files_read,
        stats.files_failed,
        stats.records_read,
        stats.inconsistent,
        stats.malformed,
        stats.missing_weather,
        stats.duplicates,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
