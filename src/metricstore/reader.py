"""Sequential reader over one stored JSON Lines file.

``RecordReader(path, timestamp_function)`` is a context manager yielding
:class:`~metricstore.models.metric.StoredMetric` records one at a time via
:meth:`RecordReader.read`, or by iteration.  Files ending in ``.gz`` (day
files) are decompressed transparently.

Each non-blank line must hold one JSON object.  Blank lines are skipped.
A line that is not a JSON object means the file is corrupt; it raises
:class:`StorageIOError` just like an ``OSError`` from the filesystem, since
either way the stored data cannot be trusted.  A record whose timestamp
field is missing or unparseable raises
:class:`~metricstore.timestamps.TimestampError` unchanged.

Records within one file are expected in ascending timestamp order; the
reader does not check this.
"""

from __future__ import annotations

import gzip
import json
import zlib
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime
from pathlib import Path
from typing import IO, Any

from metricstore.models.bucket import BucketData
from metricstore.models.metric import StoredMetric
from metricstore.timestamps import TimestampError


class StorageIOError(OSError):
    """Reading from or writing to a bucket's files failed.

    ``bucket`` identifies the affected bucket when known.
    """

    def __init__(self, message: str, *, bucket: BucketData | None = None) -> None:
        super().__init__(message)
        self.bucket = bucket


def open_text(path: Path, mode: str = "r") -> IO[str]:
    """Open *path* as UTF-8 text, through gzip when it ends in ``.gz``."""
    if path.suffix == ".gz":
        return gzip.open(path, mode + "t", encoding="utf-8")
    return path.open(mode, encoding="utf-8")


class RecordReader:
    """Scoped reader of the records stored in one file.

    The file is opened on ``__enter__`` (or :meth:`open`) and closed exactly
    once on ``__exit__`` (or :meth:`close`), however the block exits.
    """

    def __init__(
        self,
        path: Path,
        timestamp_function: Callable[[Mapping[str, Any]], datetime | None],
    ) -> None:
        self.path = path
        self._timestamp_function = timestamp_function
        self._fh: IO[str] | None = None
        self._line_number = 0

    def open(self) -> RecordReader:
        if self._fh is None:
            self._fh = open_text(self.path)
        return self

    def read(self) -> StoredMetric | None:
        """Return the next record, or None at end of file."""
        if self._fh is None:
            raise ValueError(f"reader for {self.path} is not open")
        try:
            for raw in self._fh:
                self._line_number += 1
                raw = raw.strip()
                if not raw:
                    continue
                return self._to_metric(raw)
        except (EOFError, zlib.error, UnicodeDecodeError) as exc:  # truncated or garbled file
            raise StorageIOError(f"{self.path} is unreadable: {exc}") from exc
        return None

    def close(self) -> None:
        fh, self._fh = self._fh, None
        if fh is not None:
            fh.close()

    def __enter__(self) -> RecordReader:
        return self.open()

    def __exit__(self, *_: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[StoredMetric]:
        while (record := self.read()) is not None:
            yield record

    def _to_metric(self, raw: str) -> StoredMetric:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageIOError(
                f"{self.path}:{self._line_number}: invalid JSON: {exc.msg} (col {exc.colno})"
            ) from exc
        if not isinstance(payload, dict):
            raise StorageIOError(
                f"{self.path}:{self._line_number}: expected a JSON object, "
                f"got {type(payload).__name__}"
            )
        timestamp = self._timestamp_function(payload)
        if timestamp is None:
            raise TimestampError(f"{self.path}:{self._line_number}: record has no timestamp")
        return StoredMetric(timestamp=timestamp, payload=payload)
