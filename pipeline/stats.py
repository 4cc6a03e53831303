from __future__ import annotations

from dataclasses import dataclass, fields
from functools import reduce
from typing import Iterable


@dataclass(frozen=True)
class MergeStats:
    """Counters of one unit of merge work; folded together after the pool finishes."""

    files_read: int = 0
    files_failed: int = 0
    records_read: int = 0
    malformed: int = 0
    inconsistent: int = 0
    missing_weather: int = 0
    emitted: int = 0
    duplicates: int = 0

    def __add__(self, other: "MergeStats") -> "MergeStats":
        return MergeStats(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    @property
    def compliant(self) -> int:
        return self.records_read - self.malformed - self.inconsistent

    @property
    def compliant_ratio(self) -> float:
        if self.records_read == 0:
            return 0.0
        return self.compliant / self.records_read

    @classmethod
    def combine(cls, parts: Iterable["MergeStats"]) -> "MergeStats":
        return reduce(lambda a, b: a + b, parts, cls())
