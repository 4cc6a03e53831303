from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from core.exceptions import ErrorCode, StoreLoadError
from domain.calendar import HolidayCalendar
from domain.models import FeatureVector, HolidayRange, NotFound, Prediction, WeatherSample
from domain.repositories import FeatureSource
from infrastructure.forecast import StaticForecastProvider
from infrastructure.sources import SyntheticFeatureSource
from usecases.matching import MatchingEngine

PAST_CLOCK = datetime(2026, 1, 1, tzinfo=timezone.utc)
JUNE_CLOCK = datetime(2025, 6, 1, tzinfo=timezone.utc)
# Monday, past relative to PAST_CLOCK
JAN_27 = datetime(2025, 1, 27, 12, tzinfo=timezone.utc)
# Monday, future relative to JUNE_CLOCK
JUNE_2 = datetime(2025, 6, 2, 12, tzinfo=timezone.utc)


def vector(ts, bikes, station_id=7055, capacity=20, **features):
    fields = dict(
        hour=ts.hour,
        day_of_month=ts.day,
        month=ts.month,
        weekday=ts.weekday(),
        is_holiday=False,
        precipitation=0.0,
        temperature=20.0,
        wind_speed=5.0,
    )
    fields.update(features)
    return FeatureVector(
        station_id=station_id,
        timestamp=ts,
        free_stands=capacity - bikes,
        available_bikes=bikes,
        **fields,
    )


def june_candidate(year, bikes, temperature, station_id=7055):
    # calendar of the June 2 query; only the year and the weather differ
    return vector(
        datetime(year, 6, 2, 12, tzinfo=timezone.utc),
        bikes,
        station_id=station_id,
        day_of_month=2,
        month=6,
        weekday=0,
        temperature=temperature,
    )


def engine(vectors, clock=PAST_CLOCK, weather=(), holidays=None):
    return MatchingEngine(
        SyntheticFeatureSource(vectors),
        StaticForecastProvider(weather),
        holidays=holidays,
        n_jobs=1,
        clock=lambda: clock,
    )


def june_weather(temperature=20.0):
    return [WeatherSample(JUNE_2, temperature=temperature, precipitation=0.0, wind_speed=5.0)]


class TestExactMatch:
    def test_returns_stored_availability_unchanged(self):
        e = engine([vector(JAN_27, 5), vector(datetime(2025, 1, 28, 12, tzinfo=timezone.utc), 9)])

        result = e.lookup(7055, JAN_27)

        assert (result.free_stands, result.available_bikes) == (15, 5)

    def test_first_record_in_time_order_wins(self):
        # 2020-01-27 is a Monday too
        older = vector(datetime(2020, 1, 27, 12, tzinfo=timezone.utc), 3)
        newer = vector(JAN_27, 5)
        e = engine([newer, older])

        assert e.lookup(7055, JAN_27).available_bikes == 3

    def test_minutes_do_not_affect_slot(self):
        e = engine([vector(JAN_27, 5)])

        assert e.lookup(7055, JAN_27.replace(minute=40)).available_bikes == 5

    def test_no_matching_slot_is_data_not_found(self):
        e = engine([vector(JAN_27, 5)])

        result = e.lookup(7055, datetime(2025, 1, 27, 13, tzinfo=timezone.utc))

        assert isinstance(result, NotFound)
        assert result.code == ErrorCode.DATA_NOT_FOUND
        assert not result

    def test_weekday_is_part_of_the_key(self):
        # 2024-01-27 is a Saturday
        e = engine([vector(datetime(2024, 1, 27, 12, tzinfo=timezone.utc), 5)])

        assert e.lookup(7055, JAN_27).code == ErrorCode.DATA_NOT_FOUND

    def test_naive_timestamp_is_utc(self):
        e = engine([vector(JAN_27, 5)])

        assert e.lookup(7055, datetime(2025, 1, 27, 12)).available_bikes == 5

    def test_present_instant_is_historical(self):
        e = engine([vector(JAN_27, 5)], clock=JAN_27)

        assert e.lookup(7055, JAN_27).available_bikes == 5


class TestNearestNeighbour:
    def test_picks_closest_candidate(self):
        # temperature distances from 20 are 0.1, 0.5 and 0.9
        candidates = [
            june_candidate(2022, bikes=1, temperature=40.0),
            june_candidate(2023, bikes=7, temperature=24.0),
            june_candidate(2024, bikes=12, temperature=56.0),
        ]
        e = engine(candidates, clock=JUNE_CLOCK, weather=june_weather())

        result = e.lookup(7055, JUNE_2)

        assert (result.free_stands, result.available_bikes) == (13, 7)

    def test_closer_temperature_wins(self):
        candidates = [june_candidate(2023, 4, 26.0), june_candidate(2024, 8, 15.0)]
        e = engine(candidates, clock=JUNE_CLOCK, weather=june_weather())

        assert e.lookup(7055, JUNE_2).available_bikes == 8

    def test_tie_goes_to_earliest_observation(self):
        candidates = [june_candidate(2024, 8, 25.0), june_candidate(2023, 4, 15.0)]
        e = engine(candidates, clock=JUNE_CLOCK, weather=june_weather())

        assert e.lookup(7055, JUNE_2).available_bikes == 4

    def test_no_weather_is_weather_not_found(self):
        e = engine([june_candidate(2024, 8, 15.0)], clock=JUNE_CLOCK)

        result = e.lookup(7055, JUNE_2)

        assert result.code == ErrorCode.WEATHER_NOT_FOUND

    def test_query_vector_uses_forecast_and_holidays(self):
        holidays = HolidayCalendar([HolidayRange(date(2025, 6, 2), date(2025, 6, 2))])
        e = engine([june_candidate(2024, 8, 15.0)], clock=JUNE_CLOCK, weather=june_weather(18.5), holidays=holidays)

        query = e.query_vector(7055, JUNE_2)

        assert query.is_holiday is True
        assert query.temperature == 18.5
        assert (query.hour, query.day_of_month, query.month, query.weekday) == (12, 2, 6, 0)
        assert query.timestamp is None
        assert query.free_stands is None and query.available_bikes is None


class TestLookupAll:
    def test_unknown_station_is_station_not_found(self):
        e = engine([vector(JAN_27, 5)])

        result = e.lookup(9999, JAN_27)

        assert result == NotFound(ErrorCode.STATION_NOT_FOUND, "Station 9999 not found")

    def test_stations_without_match_are_omitted(self):
        e = engine(
            [
                vector(JAN_27, 5, station_id=1),
                vector(JAN_27, 2, station_id=2),
                vector(datetime(2025, 1, 28, 12, tzinfo=timezone.utc), 6, station_id=3),
            ]
        )

        results = e.lookup_all(JAN_27)

        assert results == {1: Prediction(1, 15, 5), 2: Prediction(2, 18, 2)}

    def test_forecast_fetches_weather_once(self):
        forecast = MagicMock()
        forecast.weather_at.return_value = june_weather()[0]
        candidates = [june_candidate(2024, 8, 15.0, station_id=s) for s in (1, 2, 3)]
        e = MatchingEngine(SyntheticFeatureSource(candidates), forecast, n_jobs=1, clock=lambda: JUNE_CLOCK)

        results = e.lookup_all(JUNE_2)

        assert sorted(results) == [1, 2, 3]
        forecast.weather_at.assert_called_once()

    def test_no_forecast_weather_is_empty(self):
        e = engine([june_candidate(2024, 8, 15.0)], clock=JUNE_CLOCK)

        assert e.lookup_all(JUNE_2) == {}


class TestEngine:
    def test_predict_shape(self):
        e = engine([vector(JAN_27, 5)])

        assert e.predict(7055, JAN_27).to_dict() == {"id": 7055, "free_stands": 15, "available_bikes": 5}

    def test_predict_passes_not_found_through(self):
        assert engine([vector(JAN_27, 5)]).predict(1, JAN_27).code == ErrorCode.STATION_NOT_FOUND

    def test_stations_are_listed(self):
        e = engine([vector(JAN_27, 5, station_id=s) for s in (10001, 7055)])

        assert e.stations() == [7055, 10001]

    def test_store_load_failure_stops_startup(self):
        class BrokenSource(FeatureSource):
            def histories(self):
                raise StoreLoadError("missing shard")

        with pytest.raises(StoreLoadError):
            MatchingEngine(BrokenSource(), StaticForecastProvider(), n_jobs=1)

    def test_timezone_shifts_calendar_slot(self):
        # 12:00 Paris in January is 11:00 UTC
        stored = vector(datetime(2025, 1, 27, 11, tzinfo=timezone.utc), 5, hour=12)
        e = MatchingEngine(
            SyntheticFeatureSource([stored]),
            StaticForecastProvider(),
            tz="Europe/Paris",
            n_jobs=1,
            clock=lambda: PAST_CLOCK,
        )

        assert e.lookup(7055, datetime(2025, 1, 27, 11, tzinfo=timezone.utc)).available_bikes == 5
