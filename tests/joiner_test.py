from datetime import date, datetime, timezone

import pytest

from core.exceptions import MissingWeatherCoverageError
from domain.calendar import HolidayCalendar
from domain.models import HolidayRange, RawObservation, WeatherSample
from pipeline.joiner import CalendarWeatherJoiner

HOUR = datetime(2025, 1, 27, 12, tzinfo=timezone.utc)


def observation(ts, station_id=7055):
    return RawObservation(station_id, ts, 20, 5, 15)


def weather_at(ts, temperature=4.5):
    return {ts: WeatherSample(ts, temperature=temperature, precipitation=0.2, wind_speed=11.0)}


def test_join_uses_weather_of_truncated_hour():
    joiner = CalendarWeatherJoiner(weather_at(HOUR), HolidayCalendar())

    vector = joiner.join(observation(HOUR.replace(minute=47, second=12)))

    assert vector.temperature == 4.5
    assert vector.precipitation == 0.2
    assert vector.wind_speed == 11.0
    assert (vector.hour, vector.day_of_month, vector.month, vector.weekday) == (12, 27, 1, 0)
    assert (vector.free_stands, vector.available_bikes) == (15, 5)
    assert vector.timestamp == HOUR.replace(minute=47, second=12)
    assert vector.is_holiday is False


def test_missing_weather_raises():
    joiner = CalendarWeatherJoiner(weather_at(HOUR), HolidayCalendar())

    with pytest.raises(MissingWeatherCoverageError):
        joiner.join(observation(datetime(2025, 1, 27, 13, 5, tzinfo=timezone.utc)))


def test_join_all_skips_and_counts_missing_weather():
    joiner = CalendarWeatherJoiner(weather_at(HOUR), HolidayCalendar())
    observations = [observation(HOUR), observation(datetime(2025, 1, 27, 15, tzinfo=timezone.utc))]

    vectors = list(joiner.join_all(observations))

    assert len(vectors) == 1
    assert joiner.missing_weather == 1


def test_join_all_strict_mode_aborts():
    joiner = CalendarWeatherJoiner(weather_at(HOUR), HolidayCalendar(), strict=True)
    observations = [observation(HOUR), observation(datetime(2025, 1, 27, 15, tzinfo=timezone.utc))]

    with pytest.raises(MissingWeatherCoverageError):
        list(joiner.join_all(observations))


def test_holiday_range_bounds_are_inclusive():
    holidays = HolidayCalendar([HolidayRange(date(2025, 1, 20), date(2025, 1, 27))])
    joiner = CalendarWeatherJoiner(weather_at(HOUR), holidays)

    assert joiner.join(observation(HOUR)).is_holiday is True


def test_holiday_uses_local_calendar_date():
    late = datetime(2024, 12, 31, 23, 30, tzinfo=timezone.utc)
    hour = late.replace(minute=0)
    holidays = [HolidayRange(date(2025, 1, 1), date(2025, 1, 1))]

    paris = CalendarWeatherJoiner(weather_at(hour), HolidayCalendar(holidays, tz="Europe/Paris"), tz="Europe/Paris")
    utc = CalendarWeatherJoiner(weather_at(hour), HolidayCalendar(holidays, tz="UTC"), tz="UTC")

    local_vector = paris.join(observation(late))
    assert local_vector.is_holiday is True
    assert (local_vector.hour, local_vector.day_of_month, local_vector.month) == (0, 1, 1)
    assert utc.join(observation(late)).is_holiday is False
