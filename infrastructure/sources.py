from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Sequence

import numpy as np

from domain.calendar import HolidayCalendar, calendar_fields
from domain.history import StationHistory, frame_from_vectors, group_histories
from domain.models import FeatureVector
from domain.repositories import FeatureSource
from infrastructure.store import PartitionedFeatureStore


class StoreFeatureSource(FeatureSource):
    """Feature source backed by a partitioned store on disk."""

    def __init__(self, root: Path, n_jobs: int = -1):
        self.store = PartitionedFeatureStore(root)
        self.n_jobs = n_jobs

    def histories(self) -> dict[int, StationHistory]:
        return self.store.load(self.n_jobs)


class SyntheticFeatureSource(FeatureSource):
    """Feature source over explicitly constructed vectors (fixtures, demo mode)."""

    def __init__(self, vectors: Iterable[FeatureVector]):
        self.vectors: tuple[FeatureVector, ...] = tuple(vectors)

    def histories(self) -> dict[int, StationHistory]:
        if not self.vectors:
            return {}
        return group_histories(frame_from_vectors(self.vectors))

    @classmethod
    def generate(
        cls,
        station_ids: Sequence[int],
        start: datetime,
        hours: int,
        capacity: int = 20,
        seed: int = 0,
        tz: str = "UTC",
        holidays: HolidayCalendar | None = None,
    ) -> "SyntheticFeatureSource":
        """Deterministic hourly fleet history for ``hours`` hours from ``start``."""
        rng = np.random.default_rng(seed)
        holidays = holidays or HolidayCalendar(tz=tz)
        start = start if start.tzinfo else start.replace(tzinfo=timezone.utc)
        vectors = []
        for step in range(hours):
            ts = start + timedelta(hours=step)
            cal = calendar_fields(ts, tz)
            temperature = float(round(12 + 8 * np.sin(2 * np.pi * (cal.hour - 9) / 24) + rng.normal(0, 2), 1))
            precipitation = float(round(max(0.0, rng.normal(0, 1.5)), 1))
            wind_speed = float(round(abs(rng.normal(12, 5)), 1))
            for station_id in station_ids:
                bikes = int(rng.integers(0, capacity + 1))
                vectors.append(
                    FeatureVector(
                        station_id=int(station_id),
                        timestamp=ts,
                        hour=cal.hour,
                        day_of_month=cal.day_of_month,
                        month=cal.month,
                        weekday=cal.weekday,
                        is_holiday=holidays.is_holiday(ts),
                        free_stands=capacity - bikes,
                        available_bikes=bikes,
                        precipitation=precipitation,
                        temperature=temperature,
                        wind_speed=wind_speed,
                    )
                )
        return cls(vectors)
