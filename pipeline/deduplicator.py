from __future__ import annotations

import logging

import pandas as pd

DEDUP_KEY = ["station_id", "timestamp"]


def deduplicate_and_sort(frame: pd.DataFrame) -> tuple[pd.DataFrame, int]:
    """
    Drop repeated (station, source timestamp) rows and order each station by time.

    The first row in input order wins. Sorting is stable, so the result is
    grouped by station and strictly increasing in timestamp within a station.
    Returns the cleaned frame and the number of rows removed.
    """
    before = len(frame)
    deduped = frame.drop_duplicates(subset=DEDUP_KEY, keep="first")
    ordered = deduped.sort_values(DEDUP_KEY, kind="stable").reset_index(drop=True)
    removed = before - len(ordered)
    logging.info("Deduped %s entries", removed)
    return ordered, removed
