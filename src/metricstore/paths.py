"""Filesystem path derivations for a bucket's time-partitioned layout.

Every file a bucket reads or writes is located through :class:`PathFinder`.
Nothing here touches the filesystem.

Layout under a bucket's base path::

  2015/                          ← year directory
    01/                          ← month directory
      01/                        ← day directory
        00-00.jsonl              ← minute file: records of 00:00 UTC
        00-01.jsonl
      01.jsonl.gz                ← day file: consolidated records of 2015-01-01
      02.jsonl.gz

A day file sits next to the day directory it replaces.  When both exist
the day file wins; see :mod:`metricstore.scan`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

from metricstore.timestamps import truncate_to_minute

MINUTE_FILE_SUFFIX = ".jsonl"
DAY_FILE_SUFFIX = ".jsonl.gz"


def minute_file_name(hour: int, minute: int) -> str:
    return f"{hour:02d}-{minute:02d}{MINUTE_FILE_SUFFIX}"


def day_file_name(day: int) -> str:
    return f"{day:02d}{DAY_FILE_SUFFIX}"


@dataclass(frozen=True)
class PathFinder:
    """Paths of one minute (or, for maintenance, one day) of a bucket.

    Construct with :meth:`for_timestamp` or :meth:`for_date` rather than
    directly, so the UTC normalization stays in one place.
    """

    base_path: Path
    year: int
    month: int
    day: int
    # None when built from a calendar date alone.
    hour: int | None = None
    minute: int | None = None

    @classmethod
    def for_timestamp(cls, timestamp: datetime, base_path: Path) -> PathFinder:
        """Paths for the UTC minute containing *timestamp*."""
        ts = truncate_to_minute(timestamp)
        return cls(base_path, ts.year, ts.month, ts.day, ts.hour, ts.minute)

    @classmethod
    def for_date(cls, day: date, base_path: Path) -> PathFinder:
        """Day-level paths only; :attr:`minute_file_path` is unavailable."""
        return cls(base_path, day.year, day.month, day.day)

    @property
    def year_dir(self) -> Path:
        return self.base_path / f"{self.year:04d}"

    @property
    def month_dir(self) -> Path:
        return self.year_dir / f"{self.month:02d}"

    @property
    def day_dir(self) -> Path:
        return self.month_dir / f"{self.day:02d}"

    @property
    def day_file_path(self) -> Path:
        return self.month_dir / day_file_name(self.day)

    @property
    def minute_file_path(self) -> Path:
        if self.hour is None or self.minute is None:
            raise ValueError("PathFinder built from a date has no minute file")
        return self.day_dir / minute_file_name(self.hour, self.minute)
