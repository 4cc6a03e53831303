from __future__ import annotations
from enum import Enum


class ErrorCode(str, Enum):
    OK = "OK"
    PARSE = "PARSE"
    INCONSISTENT = "INCONSISTENT"
    MISSING_WEATHER = "MISSING_WEATHER"
    STATION_NOT_FOUND = "STATION_NOT_FOUND"
    DATA_NOT_FOUND = "DATA_NOT_FOUND"
    WEATHER_NOT_FOUND = "WEATHER_NOT_FOUND"
    STORE_LOAD = "STORE_LOAD"
    CONFIGURATION = "CONFIGURATION"


class ForecastError(Exception):
    """Base class for all merge and matching errors."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code: ErrorCode = code
        self.message: str = message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, msg={self.message})"

    def __reduce__(self):
        # subclasses take different constructor args; rebuild from code and message
        return _restore, (type(self), self.code, self.message), self.__dict__


def _restore(cls: type[ForecastError], code: ErrorCode, message: str) -> ForecastError:
    error = cls.__new__(cls)
    ForecastError.__init__(error, code, message)
    return error


class ParseError(ForecastError):
    def __init__(self, msg: str):
        super().__init__(ErrorCode.PARSE, msg)


class ConsistencyViolationError(ForecastError):
    def __init__(self, station_id: int, capacity: int, bikes: int, stands: int) -> None:
        super().__init__(
            ErrorCode.INCONSISTENT,
            f"Station {station_id}: capacity {capacity} != {bikes} bikes + {stands} stands",
        )


class MissingWeatherCoverageError(ForecastError):
    def __init__(self, station_id: int, hour: object) -> None:
        super().__init__(
            ErrorCode.MISSING_WEATHER,
            f"No weather sample for station {station_id} at {hour}",
        )
        self.station_id = station_id
        self.hour = hour


class StationNotFoundError(ForecastError):
    def __init__(self, station_id: int) -> None:
        super().__init__(ErrorCode.STATION_NOT_FOUND, f"Station {station_id} not found")


class DataNotFoundError(ForecastError):
    def __init__(self, station_id: int) -> None:
        super().__init__(
            ErrorCode.DATA_NOT_FOUND, f"No historical data matches for station {station_id}"
        )


class WeatherNotFoundError(ForecastError):
    def __init__(self, when: object) -> None:
        super().__init__(ErrorCode.WEATHER_NOT_FOUND, f"No weather forecast for {when}")


class StoreLoadError(ForecastError):
    def __init__(self, msg: str):
        super().__init__(ErrorCode.STORE_LOAD, msg)


class ConfigurationError(ForecastError):
    def __init__(self, msg: str):
        super().__init__(ErrorCode.CONFIGURATION, msg)


QUERY_ERRORS = (StationNotFoundError, DataNotFoundError, WeatherNotFoundError)
