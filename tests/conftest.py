"""Shared pytest helpers and fixtures for the metricstore test suite.

utc(...)                    — aware UTC datetime shorthand
payload(ts, **extra)        — metric payload carrying an ISO timestamp
write_minute_file(...)      — lay down a minute file under a bucket
write_day_file(...)         — lay down a gzip day file under a bucket
bucket_data                 — BucketData rooted in tmp_path
"""

import gzip
import json
from datetime import UTC, date, datetime
from pathlib import Path

import pytest

from metricstore.models.bucket import BucketData
from metricstore.paths import PathFinder


def utc(*args: int) -> datetime:
    """``utc(2015, 1, 1, 0, 2)`` → aware datetime in UTC."""
    return datetime(*args, tzinfo=UTC)


def payload(ts: datetime, **extra) -> dict:
    """Return a payload dict whose ``timestamp`` field is *ts* in ISO format."""
    return {"timestamp": ts.isoformat(), **extra}


def _lines(payloads: list[dict]) -> str:
    return "".join(json.dumps(p) + "\n" for p in payloads)


def write_minute_file(base: Path, ts: datetime, payloads: list[dict]) -> Path:
    """Write *payloads* to the minute file of *ts* and return its path."""
    path = PathFinder.for_timestamp(ts, base).minute_file_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_lines(payloads), encoding="utf-8")
    return path


def write_day_file(base: Path, day: date, payloads: list[dict]) -> Path:
    """Write *payloads* to the gzip day file of *day* and return its path."""
    path = PathFinder.for_date(day, base).day_file_path
    path.parent.mkdir(parents=True, exist_ok=True)
    with gzip.open(path, "wt", encoding="utf-8") as fh:
        fh.write(_lines(payloads))
    return path


@pytest.fixture()
def bucket_data(tmp_path: Path) -> BucketData:
    return BucketData.under(tmp_path, "cpu", "host-1")
