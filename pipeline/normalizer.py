from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator, Mapping

from core.exceptions import ConsistencyViolationError, ParseError
from domain.models import RawObservation, ensure_utc

HORODATE_FORMAT = "%Y-%m-%d %H:%M:%S%z"


def parse_horodate(value: Any) -> datetime:
    if not isinstance(value, str):
        raise ParseError(f"timestamp must be a string, got {value!r}")
    try:
        parsed = datetime.strptime(value, HORODATE_FORMAT)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise ParseError(f"unparseable timestamp {value!r}") from None
    return ensure_utc(parsed)


def _count(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError(f"{name} must be numeric, got {value!r}")
    if value < 0 or int(value) != value:
        raise ParseError(f"{name} must be a non-negative integer, got {value!r}")
    return int(value)


def parse_record(record: Mapping[str, Any]) -> RawObservation:
    """
    Build a RawObservation from one station-state value.

    Accepts the open-data timeseries shape (``number``, ``horodate``,
    ``total_stands.capacity``, ``total_stands.availabilities.{bikes,stands}``)
    and the flat shape using the RawObservation field names.
    Raises ParseError for a malformed record.
    """
    if not isinstance(record, Mapping):
        raise ParseError(f"record must be an object, got {type(record).__name__}")
    try:
        if "total_stands" in record:
            total = record["total_stands"]
            availabilities = total["availabilities"]
            return RawObservation(
                station_id=_count(record["number"], "number"),
                timestamp=parse_horodate(record["horodate"]),
                total_capacity=_count(total["capacity"], "capacity"),
                bikes_available=_count(availabilities["bikes"], "bikes"),
                stands_available=_count(availabilities["stands"], "stands"),
            )
        return RawObservation(
            station_id=_count(record["station_id"], "station_id"),
            timestamp=parse_horodate(record["timestamp"]),
            total_capacity=_count(record["total_capacity"], "total_capacity"),
            bikes_available=_count(record["bikes_available"], "bikes_available"),
            stands_available=_count(record["stands_available"], "stands_available"),
        )
    except (KeyError, TypeError) as exc:
        raise ParseError(f"missing or invalid field: {exc}") from None


def normalize_record(record: Mapping[str, Any]) -> RawObservation:
    observation = parse_record(record)
    if not observation.is_consistent():
        raise ConsistencyViolationError(
            observation.station_id,
            observation.total_capacity,
            observation.bikes_available,
            observation.stands_available,
        )
    return observation


@dataclass
class NormalizerCounts:
    records_read: int = 0
    malformed: int = 0
    inconsistent: int = 0


class TelemetryNormalizer:
    """Lazily turns raw station-state values into consistent RawObservations."""

    def __init__(self) -> None:
        self.counts = NormalizerCounts()

    def normalize(self, records: Iterable[Mapping[str, Any]]) -> Iterator[RawObservation]:
        for record in records:
            self.counts.records_read += 1
            try:
                yield normalize_record(record)
            except ConsistencyViolationError as exc:
                self.counts.inconsistent += 1
                logging.debug("Dropped inconsistent record: %s", exc.message)
            except ParseError as exc:
                self.counts.malformed += 1
                logging.debug("Dropped malformed record: %s", exc.message)
