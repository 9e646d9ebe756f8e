"""Typed ingestion boundary for historical class data."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Mapping, Union

from studioplanner.domain.models import HistoricalClassRecord
from studioplanner.utils.logger import get_logger

logger = get_logger(__name__)


def records_from_rows(rows: Iterable[Mapping[str, object]]) -> list[HistoricalClassRecord]:
    """Convert raw rows into records, dropping rows with no usable slot key.

    A row needs a location, a day, a start time and a format to be placed
    on the calendar; anything else is coerced by HistoricalClassRecord.
    """
    records: list[HistoricalClassRecord] = []
    skipped = 0
    for row in rows:
        record = HistoricalClassRecord.from_row(row)
        if not (record.location and record.day and record.start_time and record.class_format):
            skipped += 1
            continue
        records.append(record)

    if skipped:
        logger.warning("Skipped %d history rows missing location/day/time/format", skipped)
    return records


def load_history_csv(path: Union[str, Path]) -> list[HistoricalClassRecord]:
    """Load historical class records from a CSV export."""
    with open(path, newline="", encoding="utf-8-sig") as handle:
        records = records_from_rows(csv.DictReader(handle))
    logger.info("Loaded %d historical class records from %s", len(records), path)
    return records
