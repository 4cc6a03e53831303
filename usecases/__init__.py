from __future__ import annotations

from core.config import Settings
from infrastructure import build_feature_source, build_forecast_provider, build_holidays
from .matching import MatchingEngine


def build_engine(settings: Settings) -> MatchingEngine:
    """Load the configured feature source into a ready engine (blocking)."""
    holidays = build_holidays(settings)
    return MatchingEngine(
        source=build_feature_source(settings, holidays),
        forecast=build_forecast_provider(settings),
        holidays=holidays,
        weights=settings.weights,
        tz=settings.timezone,
        n_jobs=settings.workers,
    )


__all__ = ["MatchingEngine", "build_engine"]
