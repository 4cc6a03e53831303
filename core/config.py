"""Process settings read from the environment (and an optional ``.env`` file)."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import find_dotenv, load_dotenv

from core.exceptions import ConfigurationError
from domain.distance import DistanceWeights

PARTITION_SCHEMES = ("station", "round_robin")
SOURCES = ("archive", "synthetic")

_TRUE = {"1", "true", "yes", "on"}


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _get_float(name: str, default: float) -> float:
    raw = _get_env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    raw_dir: Path = Path("./velov_datas")
    weather_path: Path = Path("./weather.json")
    holidays_path: Path = Path("./holidays.json")
    merged_dir: Path = Path("./merged_data")
    partition: str = "station"
    shard_count: int = 16
    strict_weather: bool = False
    timezone: str = "Europe/Paris"
    workers: int = -1
    source: str = "archive"
    latitude: float = 45.7578
    longitude: float = 4.8320
    api_url: str = "https://api.open-meteo.com/v1/forecast"
    weights: DistanceWeights = field(default_factory=DistanceWeights)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.partition not in PARTITION_SCHEMES:
            raise ConfigurationError(
                f"Unknown partition scheme {self.partition!r}, expected one of {PARTITION_SCHEMES}"
            )
        if self.source not in SOURCES:
            raise ConfigurationError(f"Unknown data source {self.source!r}, expected one of {SOURCES}")
        if self.shard_count <= 0:
            raise ConfigurationError("FORECAST_SHARD_COUNT must be positive")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(f"Unknown timezone {self.timezone!r}") from None


def load_weights() -> DistanceWeights:
    return DistanceWeights(
        hour=_get_float("FORECAST_WEIGHT_HOUR", 1.0),
        day=_get_float("FORECAST_WEIGHT_DAY", 1.0),
        month=_get_float("FORECAST_WEIGHT_MONTH", 1.0),
        weekday=_get_float("FORECAST_WEIGHT_WEEKDAY", 1.0),
        holiday=_get_float("FORECAST_WEIGHT_HOLIDAY", 1.0),
        temperature=_get_float("FORECAST_WEIGHT_TEMPERATURE", 1.0),
        precipitation=_get_float("FORECAST_WEIGHT_PRECIPITATION", 1.0),
        wind_speed=_get_float("FORECAST_WEIGHT_WIND", 1.0),
    )


def load_settings() -> Settings:
    load_dotenv(find_dotenv(usecwd=True))
    return Settings(
        raw_dir=Path(_get_env("FORECAST_RAW_DIR", "./velov_datas")),
        weather_path=Path(_get_env("FORECAST_WEATHER_PATH", "./weather.json")),
        holidays_path=Path(_get_env("FORECAST_HOLIDAYS_PATH", "./holidays.json")),
        merged_dir=Path(_get_env("FORECAST_MERGED_DIR", "./merged_data")),
        partition=_get_env("FORECAST_PARTITION", "station").lower(),
        shard_count=_get_int("FORECAST_SHARD_COUNT", 16),
        strict_weather=_get_env("FORECAST_STRICT_WEATHER", "false").lower() in _TRUE,
        timezone=_get_env("FORECAST_TIMEZONE", "Europe/Paris"),
        workers=_get_int("FORECAST_WORKERS", -1),
        source=_get_env("FORECAST_SOURCE", "archive").lower(),
        latitude=_get_float("FORECAST_LATITUDE", 45.7578),
        longitude=_get_float("FORECAST_LONGITUDE", 4.8320),
        api_url=_get_env("FORECAST_API_URL", "https://api.open-meteo.com/v1/forecast"),
        weights=load_weights(),
        log_level=_get_env("FORECAST_LOG_LEVEL", "INFO").upper(),
    )
