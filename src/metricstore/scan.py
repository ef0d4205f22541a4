"""Interval scan over a bucket's time-partitioned files.

``IntervalScanner.scan(interval, predicate)`` walks ``[start, end)`` one UTC
minute at a time and hands every stored record in range to *predicate*,
in ascending timestamp order.  The predicate returns True to continue and
False to stop the whole scan.

Each step probes the minute under the cursor and decides where the next
probe goes:

  probe day      a day file exists → read all of it, next probe at the
                 start of the following day (one open per consolidated day)
  probe minute   a minute file exists → read it, next probe one minute
                 after the last record consulted
  probe missing  neither exists → skip ahead past whatever ancestor
                 directory is absent (day, then month, then year), or by
                 one minute when the day directory exists

The next probe never passes ``end``, even when the jump would leave the
range of ``datetime`` (an interval ending at ``datetime.max``).  Within a
file, records before the probed minute are skipped and the first record at
or after ``end`` ends the file without being delivered; ``end`` is
exclusive.

The outcome is a :class:`ScanResult`; nothing is raised for expected
termination:

  COMPLETED   the cursor reached ``end``
  STOPPED     the predicate returned False
  FAILED      opening, reading or closing a file failed; ``error`` holds
              the :class:`~metricstore.reader.StorageIOError`

Failures are not retried.  Exceptions raised by the predicate, an
``OSError`` such as ``BrokenPipeError`` included, propagate unchanged.
Filesystem presence checks go through a :class:`Presence` so the
skip-ahead logic can be exercised without disk I/O.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

from metricstore.logging import bind_bucket, get_logger
from metricstore.models.bucket import BucketData
from metricstore.models.metric import Interval, StoredMetric
from metricstore.paths import PathFinder
from metricstore.reader import RecordReader, StorageIOError

_log = get_logger(__name__)

_ONE_MINUTE = timedelta(minutes=1)

Predicate = Callable[[StoredMetric], bool]
ReaderFactory = Callable[[Path], RecordReader]


class Presence(Protocol):
    """Answers the existence questions the scan asks of the filesystem."""

    def is_file(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...


class FilesystemPresence:
    """:class:`Presence` backed by the real filesystem."""

    def is_file(self, path: Path) -> bool:
        return path.is_file()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()


class ScanOutcome(enum.Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(frozen=True)
class ScanResult:
    """How a scan ended.

    Attributes:
        outcome:   See :class:`ScanOutcome`.
        cursor:    Next minute that would have been probed (COMPLETED,
                   FAILED), or the timestamp of the record the predicate
                   rejected (STOPPED).
        delivered: Records handed to the predicate, the rejected one included.
        error:     The storage failure, for FAILED only.
    """

    outcome: ScanOutcome
    cursor: datetime
    delivered: int
    error: StorageIOError | None = None

    @property
    def completed(self) -> bool:
        return self.outcome is ScanOutcome.COMPLETED

    @property
    def stopped(self) -> bool:
        return self.outcome is ScanOutcome.STOPPED

    @property
    def failed(self) -> bool:
        return self.outcome is ScanOutcome.FAILED

    def raise_for_failure(self) -> None:
        """Re-raise the storage error of a FAILED scan; no-op otherwise."""
        if self.error is not None:
            raise self.error


class _Probe(enum.Enum):
    DAY = "day"
    MINUTE = "minute"
    MISSING = "missing"


@dataclass(frozen=True)
class _FileScan:
    cursor: datetime
    stopped: bool


# ---------------------------------------------------------------------------
# Calendar jumps
# ---------------------------------------------------------------------------


def start_of_next_day(ts: datetime) -> datetime:
    return ts.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)


def start_of_next_month(ts: datetime) -> datetime:
    if ts.month == 12:
        return start_of_next_year(ts)
    return ts.replace(month=ts.month + 1, day=1, hour=0, minute=0, second=0, microsecond=0)


def start_of_next_year(ts: datetime) -> datetime:
    return ts.replace(year=ts.year + 1, month=1, day=1, hour=0, minute=0, second=0, microsecond=0)


def next_minute(ts: datetime) -> datetime:
    return ts + _ONE_MINUTE


def _bounded(jump: Callable[[datetime], datetime], ts: datetime, end: datetime) -> datetime:
    """``min(jump(ts), end)``, or *end* when the jump leaves year 9999."""
    try:
        return min(jump(ts), end)
    except (OverflowError, ValueError):
        return end


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


class IntervalScanner:
    """Minute-stepped reader of one bucket's files.

    Args:
        bucket:         The bucket whose base path is scanned.
        reader_factory: Opens the records of one file; must return a
                        context manager with a ``read()`` method.
        presence:       Existence checks; defaults to the real filesystem.
    """

    def __init__(
        self,
        bucket: BucketData,
        reader_factory: ReaderFactory,
        *,
        presence: Presence | None = None,
    ) -> None:
        self.bucket = bucket
        self._reader_factory = reader_factory
        self._presence = presence if presence is not None else FilesystemPresence()

    def scan(self, interval: Interval, predicate: Predicate) -> ScanResult:
        start, end = interval.normalized()
        log = bind_bucket(_log, self.bucket)
        log.debug("scan started", start=start.isoformat(), end=end.isoformat())

        delivered = 0

        def deliver(record: StoredMetric) -> bool:
            nonlocal delivered
            delivered += 1
            return predicate(record)

        current = start
        try:
            while current < end:
                finder = PathFinder.for_timestamp(current, self.bucket.base_path)
                probe = self._classify(finder)

                if probe is _Probe.MISSING:
                    current = _bounded(self._skip_missing(finder), current, end)
                    continue

                if probe is _Probe.DAY:
                    log.debug("reading day file", path=str(finder.day_file_path))
                    step = self._scan_file(finder.day_file_path, current, end, deliver)
                    current = _bounded(start_of_next_day, current, end)
                else:
                    step = self._scan_file(finder.minute_file_path, current, end, deliver)
                    current = _bounded(next_minute, step.cursor, end)

                if step.stopped:
                    log.debug("scan stopped by predicate", cursor=step.cursor.isoformat())
                    return ScanResult(ScanOutcome.STOPPED, step.cursor, delivered)

        except StorageIOError as exc:
            log.warning("scan failed", cursor=current.isoformat(), error=str(exc))
            return ScanResult(ScanOutcome.FAILED, current, delivered, error=exc)

        log.debug("scan completed", delivered=delivered)
        return ScanResult(ScanOutcome.COMPLETED, current, delivered)

    def _classify(self, finder: PathFinder) -> _Probe:
        if self._presence.is_file(finder.day_file_path):
            return _Probe.DAY
        if self._presence.is_file(finder.minute_file_path):
            return _Probe.MINUTE
        return _Probe.MISSING

    def _skip_missing(self, finder: PathFinder) -> Callable[[datetime], datetime]:
        """Jump to the next minute worth probing when the current one has no file."""
        if self._presence.is_dir(finder.day_dir):
            return next_minute
        if self._presence.is_dir(finder.month_dir):
            return start_of_next_day
        if self._presence.is_dir(finder.year_dir):
            return start_of_next_month
        return start_of_next_year

    @contextmanager
    def _storage_errors(self, path: Path) -> Iterator[None]:
        try:
            yield
        except OSError as exc:
            raise StorageIOError(
                f"Could not read {path} from bucket '{self.bucket}': {exc}",
                bucket=self.bucket,
            ) from exc

    def _scan_file(
        self,
        path: Path,
        current: datetime,
        end: datetime,
        predicate: Predicate,
    ) -> _FileScan:
        # Only open, read and close are storage operations; whatever the
        # predicate raises reaches the caller unchanged.
        with ExitStack() as stack:
            with self._storage_errors(path):
                reader = stack.enter_context(self._reader_factory(path))
            step = self._scan_records(reader, path, current, end, predicate)
            with self._storage_errors(path):
                stack.close()
        return step

    def _scan_records(
        self,
        reader: RecordReader,
        path: Path,
        start: datetime,
        end: datetime,
        predicate: Predicate,
    ) -> _FileScan:
        cursor = start
        while True:
            with self._storage_errors(path):
                record = reader.read()
            if record is None:
                return _FileScan(cursor, stopped=False)
            if record.timestamp < start:
                continue
            cursor = record.timestamp
            if record.timestamp >= end:
                return _FileScan(cursor, stopped=False)
            if not predicate(record):
                return _FileScan(cursor, stopped=True)
