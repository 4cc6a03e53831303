from __future__ import annotations

from typing import Iterable

import numpy as np
import pandas as pd

from domain.distance import FEATURE_COLUMNS
from domain.models import FEATURE_FIELDS, FeatureVector

CALENDAR_COLUMNS = ["month", "day_of_month", "hour", "weekday"]


class StationHistory:
    """
    Read-only, time-ordered feature vectors of one station.

    Holds the vectors as a frame plus two frozen numpy views used by the
    matcher: the calendar key (month, day, hour, weekday) per row and the
    distance feature matrix in ``FEATURE_COLUMNS`` order.
    """

    def __init__(self, station_id: int, frame: pd.DataFrame):
        frame = frame.sort_values("timestamp", kind="stable").reset_index(drop=True)
        self.station_id = int(station_id)
        self.frame = frame
        self.calendar = frame[CALENDAR_COLUMNS].to_numpy(dtype=np.int64)
        self.features = frame[list(FEATURE_COLUMNS)].to_numpy(dtype=float)
        self.calendar.setflags(write=False)
        self.features.setflags(write=False)

    @classmethod
    def from_vectors(cls, station_id: int, vectors: Iterable[FeatureVector]) -> "StationHistory":
        return cls(station_id, frame_from_vectors(vectors))

    def __len__(self) -> int:
        return len(self.frame)

    def vector_at(self, index: int) -> FeatureVector:
        return FeatureVector.from_record(self.frame.iloc[index].to_dict())

    def vectors(self) -> list[FeatureVector]:
        return [FeatureVector.from_record(r) for r in self.frame.to_dict("records")]


def frame_from_vectors(vectors: Iterable[FeatureVector]) -> pd.DataFrame:
    rows = [v.to_record() for v in vectors]
    frame = pd.DataFrame(rows, columns=list(FEATURE_FIELDS))
    return normalize_frame(frame)


def normalize_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Coerce a frame of feature records to canonical dtypes (UTC timestamps)."""
    frame = frame.copy()
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
    for col in ("station_id", "hour", "day_of_month", "month", "weekday"):
        frame[col] = frame[col].astype("int64")
    frame["is_holiday"] = frame["is_holiday"].astype(bool)
    for col in ("precipitation", "temperature", "wind_speed"):
        frame[col] = frame[col].astype(float)
    return frame


def group_histories(frame: pd.DataFrame) -> dict[int, StationHistory]:
    """Split a fleet frame into per-station histories, each re-sorted by time."""
    return {
        int(station_id): StationHistory(int(station_id), group)
        for station_id, group in frame.groupby("station_id", sort=True)
        if len(group)
    }
