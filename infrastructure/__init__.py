from __future__ import annotations

from datetime import datetime, timezone

from core.config import Settings
from domain.calendar import HolidayCalendar
from domain.repositories import FeatureSource, ForecastProvider
from .archive import load_holidays
from .forecast import OpenMeteoForecastProvider, StaticForecastProvider
from .sources import StoreFeatureSource, SyntheticFeatureSource
from .store import PartitionedFeatureStore

DEMO_STATIONS = (7055, 7056, 10001, 10002)


def build_holidays(settings: Settings) -> HolidayCalendar:
    """Holiday ranges from the configured file; no file means no holidays."""
    if settings.holidays_path.exists():
        return load_holidays(settings.holidays_path, settings.timezone)
    return HolidayCalendar(tz=settings.timezone)


def build_feature_source(settings: Settings, holidays: HolidayCalendar | None = None) -> FeatureSource:
    if settings.source == "synthetic":
        return SyntheticFeatureSource.generate(
            DEMO_STATIONS,
            start=datetime(2024, 1, 1, tzinfo=timezone.utc),
            hours=24 * 7 * 8,
            tz=settings.timezone,
            holidays=holidays,
        )
    return StoreFeatureSource(settings.merged_dir, n_jobs=settings.workers)


def build_forecast_provider(settings: Settings) -> ForecastProvider:
    return OpenMeteoForecastProvider(
        latitude=settings.latitude,
        longitude=settings.longitude,
        api_url=settings.api_url,
    )


__all__ = [
    "OpenMeteoForecastProvider",
    "PartitionedFeatureStore",
    "StaticForecastProvider",
    "StoreFeatureSource",
    "SyntheticFeatureSource",
    "build_feature_source",
    "build_forecast_provider",
    "build_holidays",
]
