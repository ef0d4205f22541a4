"""Read-only view over one bucket.

``ReadableBucket`` is what callers query::

    bucket = ReadableBucket.from_settings(settings, "cpu", "host-1")
    seen = []
    result = bucket.read(Interval(start, end), lambda m: seen.append(m) or True)
    result.raise_for_failure()

It owns no open resources between calls; every ``read`` opens and closes its
own readers, so one instance can serve sequential queries indefinitely.
Concurrent queries should each use their own instance.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

from metricstore.config import Settings
from metricstore.models.bucket import BucketData
from metricstore.models.metric import Interval
from metricstore.paths import PathFinder
from metricstore.reader import RecordReader
from metricstore.scan import IntervalScanner, Predicate, Presence, ReaderFactory, ScanResult
from metricstore.timestamps import TimestampFunction


class ReadableBucket:
    """A bucket's stored metrics, queryable by time interval."""

    def __init__(
        self,
        bucket_data: BucketData,
        timestamp_function: TimestampFunction,
        *,
        reader_factory: ReaderFactory | None = None,
        presence: Presence | None = None,
    ) -> None:
        self.bucket_data = bucket_data
        self.timestamp_function = timestamp_function
        self._scanner = IntervalScanner(
            bucket_data,
            reader_factory if reader_factory is not None else self._open_reader,
            presence=presence,
        )

    @classmethod
    def from_settings(cls, settings: Settings, bucket_type: str, name: str) -> ReadableBucket:
        return cls(
            BucketData.from_settings(settings, bucket_type, name),
            TimestampFunction.from_settings(settings),
        )

    @property
    def name(self) -> str:
        return self.bucket_data.name

    @property
    def type(self) -> str:
        return self.bucket_data.type

    def read(self, interval: Interval, predicate: Predicate) -> ScanResult:
        """Deliver every record in *interval* to *predicate*, oldest first.

        See :mod:`metricstore.scan` for the outcome semantics.
        """
        return self._scanner.scan(interval, predicate)

    def path_finder(self, at: datetime | date) -> PathFinder:
        """Paths for the minute of a datetime, or the day of a plain date."""
        if isinstance(at, datetime):
            return PathFinder.for_timestamp(at, self.bucket_data.base_path)
        return PathFinder.for_date(at, self.bucket_data.base_path)

    def _open_reader(self, path: Path) -> RecordReader:
        return RecordReader(path, self.timestamp_function)
