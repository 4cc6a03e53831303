from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import datetime

from domain.history import StationHistory
from domain.models import WeatherSample


class FeatureSource(ABC):
    """Abstraction for access to merged historical feature vectors."""

    @abstractmethod
    def histories(self) -> dict[int, StationHistory]:
        """Return every station's time-ordered history, keyed by station id."""
        raise NotImplementedError


class ForecastProvider(ABC):
    """Abstraction for live weather at the fleet location."""

    @abstractmethod
    def weather_at(self, timestamp: datetime) -> WeatherSample | None:
        """Return the hourly sample covering ``timestamp`` or ``None``."""
        raise NotImplementedError
