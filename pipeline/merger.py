from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from core.config import Settings
from core.exceptions import ParseError
from domain.calendar import HolidayCalendar
from domain.history import frame_from_vectors
from domain.models import WeatherSample
from infrastructure.archive import load_holidays, load_weather_archive, read_telemetry_shard
from infrastructure.store import PartitionedFeatureStore
from pipeline.deduplicator import deduplicate_and_sort
from pipeline.joiner import CalendarWeatherJoiner
from pipeline.normalizer import TelemetryNormalizer
from pipeline.stats import MergeStats


@dataclass(frozen=True)
class ShardResult:
    path: Path
    frame: pd.DataFrame
    stats: MergeStats


@dataclass(frozen=True)
class MergeReport:
    stats: MergeStats
    manifest: dict[str, Any]


def process_shard(
    path: Path,
    weather: Mapping[datetime, WeatherSample],
    holidays: HolidayCalendar,
    tz: str,
    strict: bool,
) -> ShardResult:
    """
    Normalise and join one raw telemetry shard.

    A shard that cannot be parsed is reported and yields nothing; in strict
    mode a record without weather coverage raises and aborts the merge.
    """
    try:
        records = read_telemetry_shard(path)
    except ParseError as exc:
        logging.error("Failed to read %s: %s", path, exc.message)
        return ShardResult(path, frame_from_vectors([]), MergeStats(files_failed=1))

    normalizer = TelemetryNormalizer()
    joiner = CalendarWeatherJoiner(weather, holidays, tz=tz, strict=strict)
    vectors = list(joiner.join_all(normalizer.normalize(records)))

    counts = normalizer.counts
    stats = MergeStats(
        files_read=1,
        records_read=counts.records_read,
        malformed=counts.malformed,
        inconsistent=counts.inconsistent,
        missing_weather=joiner.missing_weather,
        emitted=len(vectors),
    )
    return ShardResult(path, frame_from_vectors(vectors), stats)


class MergePipeline:
    """Batch merge of raw telemetry with weather and holidays into the feature store."""

    def __init__(
        self,
        raw_dir: Path,
        weather_path: Path,
        holidays_path: Path,
        out_dir: Path,
        partition: str = "station",
        shard_count: int = 16,
        strict: bool = False,
        tz: str = "UTC",
        n_jobs: int = -1,
    ):
        self.raw_dir = Path(raw_dir)
        self.weather_path = Path(weather_path)
        self.holidays_path = Path(holidays_path)
        self.store = PartitionedFeatureStore(out_dir)
        self.partition = partition
        self.shard_count = shard_count
        self.strict = strict
        self.tz = tz
        self.n_jobs = n_jobs

    @classmethod
    def from_settings(cls, settings: Settings) -> "MergePipeline":
        return cls(
            raw_dir=settings.raw_dir,
            weather_path=settings.weather_path,
            holidays_path=settings.holidays_path,
            out_dir=settings.merged_dir,
            partition=settings.partition,
            shard_count=settings.shard_count,
            strict=settings.strict_weather,
            tz=settings.timezone,
            n_jobs=settings.workers,
        )

    def input_files(self) -> list[Path]:
        if not self.raw_dir.is_dir():
            raise ParseError(f"raw telemetry directory {self.raw_dir} does not exist")
        return sorted(p for p in self.raw_dir.iterdir() if p.suffix == ".json")

    def run(self) -> MergeReport:
        logging.info("Merge started")
        weather = load_weather_archive(self.weather_path)
        holidays = load_holidays(self.holidays_path, self.tz)
        paths = self.input_files()
        logging.info("Merging %s telemetry files from %s", len(paths), self.raw_dir)

        pending = Parallel(n_jobs=self.n_jobs, return_as="generator")(
            delayed(process_shard)(path, weather, holidays, self.tz, self.strict)
            for path in paths
        )
        results: list[ShardResult] = list(tqdm(pending, total=len(paths), desc="merge", unit="file"))

        stats = MergeStats.combine(r.stats for r in results)
        logging.info(
            "Compliant data : %s/%s (%.2f%%)",
            stats.compliant,
            stats.records_read,
            stats.compliant_ratio * 100,
        )
        if stats.missing_weather:
            logging.warning("Dropped %s records without weather coverage", stats.missing_weather)
        if stats.files_failed:
            logging.warning("%s telemetry files could not be read", stats.files_failed)

        frames = [r.frame for r in results if len(r.frame)]
        fleet = pd.concat(frames, ignore_index=True) if frames else frame_from_vectors([])
        fleet, removed = deduplicate_and_sort(fleet)
        stats = stats + MergeStats(duplicates=removed)

        manifest = self.store.write(fleet, scheme=self.partition, shard_count=self.shard_count)
        logging.info("Merge finished: %s feature vectors for %s stations", len(fleet), manifest["stations"])
        return MergeReport(stats=stats, manifest=manifest)
