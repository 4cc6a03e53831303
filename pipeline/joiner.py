from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Iterator, Mapping

from core.exceptions import MissingWeatherCoverageError
from domain.calendar import HolidayCalendar, calendar_fields
from domain.models import FeatureVector, RawObservation, WeatherSample, truncate_to_hour


class CalendarWeatherJoiner:
    """
    Attach the hourly weather sample and the holiday flag to observations.

    ``weather`` is keyed by hour-truncated UTC datetimes. An observation whose
    hour has no sample is never given made-up weather: ``join`` raises
    MissingWeatherCoverageError and ``join_all`` either drops and counts it
    or, in strict mode, lets the error abort the merge.
    """

    def __init__(
        self,
        weather: Mapping[datetime, WeatherSample],
        holidays: HolidayCalendar,
        tz: str = "UTC",
        strict: bool = False,
    ):
        self.weather = weather
        self.holidays = holidays
        self.tz = tz
        self.strict = strict
        self.missing_weather = 0

    def join(self, observation: RawObservation) -> FeatureVector:
        hour = truncate_to_hour(observation.timestamp)
        sample = self.weather.get(hour)
        if sample is None:
            raise MissingWeatherCoverageError(observation.station_id, hour)

        cal = calendar_fields(observation.timestamp, self.tz)
        return FeatureVector(
            station_id=observation.station_id,
            timestamp=observation.timestamp,
            hour=cal.hour,
            day_of_month=cal.day_of_month,
            month=cal.month,
            weekday=cal.weekday,
            is_holiday=self.holidays.is_holiday(observation.timestamp),
            free_stands=observation.stands_available,
            available_bikes=observation.bikes_available,
            precipitation=sample.precipitation,
            temperature=sample.temperature,
            wind_speed=sample.wind_speed,
        )

    def join_all(self, observations: Iterable[RawObservation]) -> Iterator[FeatureVector]:
        for observation in observations:
            try:
                yield self.join(observation)
            except MissingWeatherCoverageError as exc:
                if self.strict:
                    raise
                self.missing_weather += 1
                logging.debug("Skipped observation: %s", exc.message)
