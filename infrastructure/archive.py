"""Readers for the raw telemetry shards, the weather archive and the holiday list."""
from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from core.exceptions import ParseError
from domain.calendar import HolidayCalendar
from domain.models import HolidayRange, WeatherSample

# Open-Meteo hourly variable -> WeatherSample field
HOURLY_COLUMNS = {
    "temperature_2m": "temperature",
    "precipitation": "precipitation",
    "wind_speed_10m": "wind_speed",
}
WEATHER_FIELDS = ["temperature", "precipitation", "wind_speed"]


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(f"{path}: {exc}") from None


def read_telemetry_shard(path: Path) -> list[dict[str, Any]]:
    """Return the station-state values of one raw shard (bare array or paged ``values``)."""
    data = _read_json(path)
    if isinstance(data, dict) and "values" in data:
        data = data["values"]
    if not isinstance(data, list):
        raise ParseError(f"{path}: expected a JSON array of records")
    return data


def _hourly_frame(payload: dict[str, Any]) -> pd.DataFrame:
    hourly = payload.get("hourly", {})
    if not isinstance(hourly, dict) or "time" not in hourly:
        raise ParseError("hourly weather payload has no 'time' column")
    missing = [c for c in HOURLY_COLUMNS if c not in hourly]
    if missing:
        raise ParseError(f"hourly weather payload lacks {missing}")
    lengths = {len(hourly[c]) for c in ["time", *HOURLY_COLUMNS]}
    if len(lengths) != 1:
        raise ParseError("hourly weather columns have different lengths")
    return pd.DataFrame(
        {"time": hourly["time"], **{dst: hourly[src] for src, dst in HOURLY_COLUMNS.items()}}
    )


def _flat_frame(payload: dict[str, Any]) -> pd.DataFrame:
    frame = pd.DataFrame.from_dict(payload, orient="index")
    missing = [c for c in WEATHER_FIELDS if c not in frame.columns]
    if missing:
        raise ParseError(f"flat weather map lacks {missing}")
    return frame[WEATHER_FIELDS].rename_axis("time").reset_index()


def weather_frame(payload: Any) -> pd.DataFrame:
    """
    Normalise either weather shape to one row per UTC hour.

    Rows with a missing value are dropped and repeated hours keep their
    first sample. Naive times are UTC, as requested from Open-Meteo.
    """
    if not isinstance(payload, dict):
        raise ParseError("weather payload must be a JSON object")
    frame = _hourly_frame(payload) if "hourly" in payload else _flat_frame(payload)
    try:
        frame["slot_ts"] = pd.to_datetime(frame["time"], utc=True).dt.floor("h")
        frame[WEATHER_FIELDS] = frame[WEATHER_FIELDS].apply(pd.to_numeric, errors="coerce")
    except (ValueError, TypeError) as exc:
        raise ParseError(f"invalid weather values: {exc}") from None
    return (
        frame.dropna(subset=WEATHER_FIELDS)
        .drop_duplicates(subset="slot_ts", keep="first")
        .sort_values("slot_ts")
        .reset_index(drop=True)
    )


def weather_index(payload: Any) -> dict[datetime, WeatherSample]:
    frame = weather_frame(payload)
    index: dict[datetime, WeatherSample] = {}
    for row in frame.itertuples(index=False):
        ts = row.slot_ts.to_pydatetime()
        index[ts] = WeatherSample(
            timestamp=ts,
            temperature=float(row.temperature),
            precipitation=float(row.precipitation),
            wind_speed=float(row.wind_speed),
        )
    return index


def load_weather_archive(path: Path) -> dict[datetime, WeatherSample]:
    index = weather_index(_read_json(path))
    logging.info("Loaded %s hourly weather samples from %s", len(index), path)
    return index


def _parse_date(value: Any) -> date:
    if not isinstance(value, str):
        raise ParseError(f"holiday date must be a string, got {value!r}")
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ParseError(f"invalid holiday date {value!r}") from None


def load_holidays(path: Path, tz: str) -> HolidayCalendar:
    data = _read_json(path)
    if not isinstance(data, list):
        raise ParseError(f"{path}: expected a JSON array of holiday ranges")
    ranges = []
    for item in data:
        if not isinstance(item, dict):
            raise ParseError(f"{path}: holiday range must be an object")
        start = _parse_date(item.get("start_date"))
        end = _parse_date(item.get("end_date"))
        if end < start:
            raise ParseError(f"{path}: holiday range ends before it starts ({start} > {end})")
        ranges.append(HolidayRange(start=start, end=end))
    logging.info("Loaded %s holiday ranges from %s", len(ranges), path)
    return HolidayCalendar(ranges, tz=tz)
