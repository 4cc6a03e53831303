from __future__ import annotations

import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Mapping

import numpy as np
from joblib import Parallel, delayed

from core.exceptions import (
    QUERY_ERRORS,
    DataNotFoundError,
    StationNotFoundError,
    WeatherNotFoundError,
)
from domain.calendar import HolidayCalendar, calendar_fields
from domain.distance import DistanceWeights, distances
from domain.history import StationHistory
from domain.models import FeatureVector, NotFound, Prediction, WeatherSample, ensure_utc
from domain.repositories import FeatureSource, ForecastProvider

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MatchingEngine:
    """
    Answers availability queries against an immutable per-station snapshot.

    The source is read once, at construction; a StoreLoadError there stops
    start-up. Past (or present) timestamps are resolved by exact calendar
    match, future ones by weighted nearest neighbour over calendar and live
    weather. Ties go to the earliest observation, since histories are
    time-ordered and ``argmin`` returns the first minimum.
    """

    def __init__(
        self,
        source: FeatureSource,
        forecast: ForecastProvider,
        holidays: HolidayCalendar | None = None,
        weights: DistanceWeights | None = None,
        tz: str = "UTC",
        n_jobs: int = -1,
        clock: Clock = utc_now,
    ):
        self._histories: Mapping[int, StationHistory] = MappingProxyType(dict(source.histories()))
        self.forecast = forecast
        self.holidays = holidays or HolidayCalendar(tz=tz)
        self.weights = weights or DistanceWeights()
        self.tz = tz
        self.n_jobs = n_jobs
        self.clock = clock
        logging.info("Matching engine ready with %s stations", len(self._histories))

    def stations(self) -> list[int]:
        return sorted(self._histories)

    # ----------------------------------------------------------------- public
    def lookup(self, station_id: int, timestamp: datetime) -> FeatureVector | NotFound:
        try:
            history = self._history(station_id)
            timestamp = ensure_utc(timestamp)
            if self.is_historical(timestamp):
                return self.match_exact(history, timestamp)
            return self.match_nearest(history, self.query_vector(station_id, timestamp))
        except QUERY_ERRORS as exc:
            return NotFound(exc.code, exc.message)

    def predict(self, station_id: int, timestamp: datetime) -> Prediction | NotFound:
        result = self.lookup(station_id, timestamp)
        if isinstance(result, NotFound):
            return result
        return Prediction.from_vector(result)

    def lookup_all(self, timestamp: datetime) -> dict[int, Prediction]:
        """
        Predict every loaded station for one timestamp, in parallel.

        Stations without a match are left out; an empty result means nothing
        matched (for a forecast, typically no weather for that hour).
        """
        timestamp = ensure_utc(timestamp)
        weather = None
        if not self.is_historical(timestamp):
            weather = self.forecast.weather_at(timestamp)
            if weather is None:
                logging.warning("No weather forecast for %s, no predictions", timestamp)
                return {}

        results = Parallel(n_jobs=self.n_jobs, prefer="threads")(
            delayed(self._predict_one)(station_id, timestamp, weather)
            for station_id in self._histories
        )
        return {p.station_id: p for p in results if p is not None}

    # ---------------------------------------------------------------- regimes
    def is_historical(self, timestamp: datetime) -> bool:
        return ensure_utc(timestamp) <= self.clock()

    def match_exact(self, history: StationHistory, timestamp: datetime) -> FeatureVector:
        """First vector, in time order, whose (month, day, hour, weekday) equal the query's."""
        key = np.array(calendar_fields(timestamp, self.tz).as_tuple())
        hits = np.flatnonzero((history.calendar == key).all(axis=1))
        if len(hits) == 0:
            raise DataNotFoundError(history.station_id)
        return history.vector_at(int(hits[0]))

    def match_nearest(self, history: StationHistory, query: FeatureVector) -> FeatureVector:
        scores = distances(query, history.features, self.weights)
        if len(scores) == 0:
            raise DataNotFoundError(history.station_id)
        return history.vector_at(int(np.argmin(scores)))

    def query_vector(
        self, station_id: int, timestamp: datetime, weather: WeatherSample | None = None
    ) -> FeatureVector:
        """Synthetic vector for a future timestamp; availability is left unset."""
        if weather is None:
            weather = self.forecast.weather_at(timestamp)
        if weather is None:
            raise WeatherNotFoundError(timestamp)
        cal = calendar_fields(timestamp, self.tz)
        return FeatureVector(
            station_id=station_id,
            timestamp=None,
            hour=cal.hour,
            day_of_month=cal.day_of_month,
            month=cal.month,
            weekday=cal.weekday,
            is_holiday=self.holidays.is_holiday(timestamp),
            free_stands=None,
            available_bikes=None,
            precipitation=weather.precipitation,
            temperature=weather.temperature,
            wind_speed=weather.wind_speed,
        )

    # ---------------------------------------------------------------- helpers
    def _history(self, station_id: int) -> StationHistory:
        history = self._histories.get(station_id)
        if history is None:
            raise StationNotFoundError(station_id)
        return history

    def _predict_one(
        self, station_id: int, timestamp: datetime, weather: WeatherSample | None
    ) -> Prediction | None:
        history = self._histories[station_id]
        try:
            if weather is None:
                vector = self.match_exact(history, timestamp)
            else:
                vector = self.match_nearest(history, self.query_vector(station_id, timestamp, weather))
        except QUERY_ERRORS:
            return None
        return Prediction.from_vector(vector)
