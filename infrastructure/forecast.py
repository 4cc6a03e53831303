from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Mapping

import requests
import requests_cache
from retry_requests import retry

from core.exceptions import ParseError
from domain.models import WeatherSample, truncate_to_hour
from domain.repositories import ForecastProvider
from infrastructure.archive import HOURLY_COLUMNS, weather_index

FORECAST_DAYS = 16
PAST_DAYS = 2
TIMEOUT = 30


class OpenMeteoForecastProvider(ForecastProvider):
    """
    Hourly forecast for the fleet location from Open-Meteo.

    Responses are cached for an hour and retried on transient failures; the
    HTTP client's own timeout bounds each call. Any fetch or parse failure is
    reported as "no sample" so callers see WeatherNotFound rather than a crash.
    """

    def __init__(
        self,
        latitude: float,
        longitude: float,
        api_url: str = "https://api.open-meteo.com/v1/forecast",
        session: requests.Session | None = None,
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.api_url = api_url
        self.session = session or retry(
            requests_cache.CachedSession("forecast_cache", expire_after=3600)
        )

    def _params(self) -> dict[str, object]:
        return {
            "latitude": f"{self.latitude:.4f}",
            "longitude": f"{self.longitude:.4f}",
            "hourly": ",".join(HOURLY_COLUMNS),
            "timezone": "UTC",
            "past_days": PAST_DAYS,
            "forecast_days": FORECAST_DAYS,
        }

    def fetch(self) -> dict[datetime, WeatherSample]:
        r = self.session.get(self.api_url, params=self._params(), timeout=TIMEOUT)
        r.raise_for_status()
        return weather_index(r.json())

    def weather_at(self, timestamp: datetime) -> WeatherSample | None:
        try:
            samples = self.fetch()
        except (requests.RequestException, ParseError, ValueError) as exc:
            logging.warning("Weather forecast unavailable: %s", exc)
            return None
        return samples.get(truncate_to_hour(timestamp))


class StaticForecastProvider(ForecastProvider):
    """Forecast provider over a fixed set of hourly samples."""

    def __init__(self, samples: Iterable[WeatherSample] | Mapping[datetime, WeatherSample] = ()):
        if isinstance(samples, Mapping):
            samples = samples.values()
        self.samples = {truncate_to_hour(s.timestamp): s for s in samples}

    def weather_at(self, timestamp: datetime) -> WeatherSample | None:
        return self.samples.get(truncate_to_hour(timestamp))
