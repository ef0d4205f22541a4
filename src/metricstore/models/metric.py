"""Stored records and query intervals."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from metricstore.timestamps import truncate_to_minute


@dataclass(frozen=True)
class StoredMetric:
    """One stored record: its minute-precision UTC timestamp and payload.

    The payload is the parsed JSON object exactly as it was written; the
    timestamp is what the bucket's TimestampFunction extracted from it.
    """

    timestamp: datetime
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class Interval:
    """Half-open time range ``[start, end)``.

    Bounds keep whatever precision they were given; the scanner normalizes
    them to UTC minutes.  Naive bounds are read as UTC.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if truncate_to_minute(self.start) > truncate_to_minute(self.end):
            raise ValueError(f"interval start {self.start} is after end {self.end}")

    def normalized(self) -> tuple[datetime, datetime]:
        """Return ``(start, end)`` in UTC, truncated to the minute."""
        return truncate_to_minute(self.start), truncate_to_minute(self.end)
