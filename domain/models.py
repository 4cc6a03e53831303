from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Any, Mapping

import pandas as pd

from core.exceptions import ErrorCode

FEATURE_FIELDS = (
    "station_id",
    "timestamp",
    "hour",
    "day_of_month",
    "month",
    "weekday",
    "is_holiday",
    "free_stands",
    "available_bikes",
    "precipitation",
    "temperature",
    "wind_speed",
)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def truncate_to_hour(value: datetime) -> datetime:
    return ensure_utc(value).replace(minute=0, second=0, microsecond=0)


@dataclass(frozen=True, slots=True)
class RawObservation:
    station_id: int
    timestamp: datetime
    total_capacity: int
    bikes_available: int
    stands_available: int

    def is_consistent(self) -> bool:
        return self.total_capacity == self.bikes_available + self.stands_available


@dataclass(frozen=True, slots=True)
class WeatherSample:
    timestamp: datetime
    temperature: float
    precipitation: float
    wind_speed: float


@dataclass(frozen=True, slots=True)
class HolidayRange:
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True, slots=True)
class FeatureVector:
    """One station observation merged with its calendar and weather context.

    ``timestamp`` is the source (pre-truncation) UTC instant; it is ``None``
    only for synthetic query vectors built at match time, which also leave
    ``free_stands`` and ``available_bikes`` unset.
    """

    station_id: int
    timestamp: datetime | None
    hour: int
    day_of_month: int
    month: int
    weekday: int
    is_holiday: bool
    free_stands: int | None
    available_bikes: int | None
    precipitation: float
    temperature: float
    wind_speed: float

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        record["timestamp"] = self.timestamp.isoformat() if self.timestamp else None
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "FeatureVector":
        ts = record.get("timestamp")
        if isinstance(ts, str):
            ts = ensure_utc(datetime.fromisoformat(ts))
        elif isinstance(ts, pd.Timestamp):
            ts = ensure_utc(ts.to_pydatetime())
        elif isinstance(ts, datetime):
            ts = ensure_utc(ts)
        return cls(
            station_id=int(record["station_id"]),
            timestamp=ts,
            hour=int(record["hour"]),
            day_of_month=int(record["day_of_month"]),
            month=int(record["month"]),
            weekday=int(record["weekday"]),
            is_holiday=bool(record["is_holiday"]),
            free_stands=_optional_int(record.get("free_stands")),
            available_bikes=_optional_int(record.get("available_bikes")),
            precipitation=float(record["precipitation"]),
            temperature=float(record["temperature"]),
            wind_speed=float(record["wind_speed"]),
        )


@dataclass(frozen=True, slots=True)
class Prediction:
    station_id: int
    free_stands: int
    available_bikes: int

    @classmethod
    def from_vector(cls, vector: FeatureVector) -> "Prediction":
        return cls(
            station_id=vector.station_id,
            free_stands=int(vector.free_stands),
            available_bikes=int(vector.available_bikes),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "id": self.station_id,
            "free_stands": self.free_stands,
            "available_bikes": self.available_bikes,
        }


@dataclass(frozen=True, slots=True)
class NotFound:
    """Typed "no result" outcome of a query."""

    code: ErrorCode
    message: str

    def __bool__(self) -> bool:
        return False


def _optional_int(value: Any) -> int | None:
    # NaN != NaN; pandas fills missing integers with NaN
    if value is None or value != value:
        return None
    return int(value)
