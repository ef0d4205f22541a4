"""Append path and day consolidation for one bucket.

``WritableBucket.write(payload)`` appends the payload as one JSON line to
the minute file of its timestamp.  Append handles stay open between writes
so bursts into the same minute do not reopen the file; an
:class:`~metricstore.cache.LRUCache` bounds how many are open at once and
every handle it evicts is closed.

``WritableBucket.consolidate(day)`` folds a finished day's minute files into
its gzip day file::

    2015/01/01/00-00.jsonl  ┐
    2015/01/01/00-01.jsonl  ├──►  2015/01/01.jsonl.gz
    2015/01/01/…            ┘

The day file is written under a temporary name and renamed into place, so
readers see either the minute files or the complete day file.  Once a day
file exists it is authoritative for that day, so further writes into the
day are rejected with :class:`DayConsolidatedError`.

No locking: one writer per bucket at a time.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import IO, Any

from metricstore.cache import LRUCache
from metricstore.config import Settings
from metricstore.logging import bind_bucket, get_logger
from metricstore.models.bucket import BucketData
from metricstore.models.metric import StoredMetric
from metricstore.paths import MINUTE_FILE_SUFFIX, PathFinder
from metricstore.reader import StorageIOError, open_text
from metricstore.timestamps import TimestampError, TimestampFunction

_log = get_logger(__name__)


class DayConsolidatedError(ValueError):
    """A write targeted a day that already has a day file."""


@dataclass
class _Appender:
    path: Path
    fh: IO[str]

    def close(self) -> None:
        self.fh.close()


class WritableBucket:
    """Appends payloads to a bucket's minute files.

    Args:
        bucket_data:        Target bucket.
        timestamp_function: Extracts the partitioning timestamp.
        max_open_files:     Handle cache capacity, as an int or a callable
                            re-read on every new handle.
    """

    def __init__(
        self,
        bucket_data: BucketData,
        timestamp_function: TimestampFunction,
        *,
        max_open_files: int | Callable[[], int | None] | None = None,
    ) -> None:
        self.bucket_data = bucket_data
        self.timestamp_function = timestamp_function
        self._handles: LRUCache[Path, _Appender] = LRUCache(max_open_files)

    @classmethod
    def from_settings(cls, settings: Settings, bucket_type: str, name: str) -> WritableBucket:
        return cls(
            BucketData.from_settings(settings, bucket_type, name),
            TimestampFunction.from_settings(settings),
            max_open_files=lambda: settings.storage.max_open_files,
        )

    @property
    def open_files(self) -> int:
        return len(self._handles)

    def write(self, payload: Mapping[str, Any]) -> StoredMetric:
        """Append *payload* to its minute file and return the stored record.

        Raises:
            TimestampError:       The payload has no usable timestamp.
            DayConsolidatedError: The payload's day was already consolidated.
            StorageIOError:       The minute file could not be written.
        """
        timestamp = self.timestamp_function(payload)
        if timestamp is None:
            raise TimestampError("cannot store a missing payload")
        finder = PathFinder.for_timestamp(timestamp, self.bucket_data.base_path)
        if finder.day_file_path.is_file():
            raise DayConsolidatedError(
                f"{timestamp.date()} of bucket '{self.bucket_data}' is already consolidated"
            )

        appender = self._appender(finder.minute_file_path)
        try:
            appender.fh.write(json.dumps(payload, separators=(",", ":")) + "\n")
            appender.fh.flush()
        except OSError as exc:
            raise StorageIOError(
                f"Could not append to {appender.path}: {exc}", bucket=self.bucket_data
            ) from exc
        return StoredMetric(timestamp=timestamp, payload=payload)

    def consolidate(self, day: date) -> int:
        """Merge *day*'s minute files into its day file; return the record count.

        A day without minute files is left alone and returns 0.

        Raises:
            DayConsolidatedError: The day file already exists.
            StorageIOError:       Reading, writing or cleanup failed.  The
                                  minute files are kept when the day file
                                  could not be completed.
        """
        finder = PathFinder.for_date(day, self.bucket_data.base_path)
        self._release(finder.day_dir)

        if finder.day_file_path.is_file():
            raise DayConsolidatedError(f"{finder.day_file_path} already exists")
        if not finder.day_dir.is_dir():
            return 0
        minute_files = sorted(finder.day_dir.glob(f"*{MINUTE_FILE_SUFFIX}"))
        if not minute_files:
            return 0

        tmp = finder.day_file_path.with_name("." + finder.day_file_path.name)
        count = 0
        try:
            with open_text(tmp, "w") as out:
                for minute_file in minute_files:
                    with minute_file.open(encoding="utf-8") as src:
                        for line in src:
                            if line.strip():
                                out.write(line.rstrip("\n") + "\n")
                                count += 1
            tmp.replace(finder.day_file_path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise StorageIOError(
                f"Could not consolidate {day} of bucket '{self.bucket_data}': {exc}",
                bucket=self.bucket_data,
            ) from exc

        try:
            for minute_file in minute_files:
                minute_file.unlink()
            if not any(finder.day_dir.iterdir()):
                finder.day_dir.rmdir()
        except OSError as exc:
            raise StorageIOError(
                f"Day file {finder.day_file_path} written but cleanup failed: {exc}",
                bucket=self.bucket_data,
            ) from exc

        bind_bucket(_log, self.bucket_data).info(
            "day consolidated",
            day=day.isoformat(),
            minute_files=len(minute_files),
            records=count,
        )
        return count

    def close(self) -> None:
        """Close every open minute file."""
        for appender in self._handles:
            appender.close()
        self._handles.clear()

    def __enter__(self) -> WritableBucket:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _appender(self, path: Path) -> _Appender:
        appender = self._handles.get(path)
        if appender is not None:
            return appender
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            appender = _Appender(path, path.open("a", encoding="utf-8"))
        except OSError as exc:
            raise StorageIOError(
                f"Could not open {path} for append: {exc}", bucket=self.bucket_data
            ) from exc
        for evicted in self._handles.put(path, appender):
            evicted.close()
            bind_bucket(_log, self.bucket_data).debug(
                "closed idle minute file", path=str(evicted.path)
            )
        return appender

    def _release(self, day_dir: Path) -> None:
        for path in self._handles.keys():
            if path.parent == day_dir:
                appender = self._handles.remove(path)
                if appender is not None:
                    appender.close()
