"""Tests for bucket path derivations."""

from dataclasses import FrozenInstanceError
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest
from conftest import utc

from metricstore.paths import PathFinder, day_file_name, minute_file_name

BASE = Path("/data/cpu/host-1")


class TestForTimestamp:
    def test_minute_file_path(self):
        finder = PathFinder.for_timestamp(utc(2015, 1, 2, 3, 4), BASE)
        assert finder.minute_file_path == BASE / "2015" / "01" / "02" / "03-04.jsonl"

    def test_day_file_is_sibling_of_day_dir(self):
        finder = PathFinder.for_timestamp(utc(2015, 1, 2, 3, 4), BASE)
        assert finder.day_file_path == BASE / "2015" / "01" / "02.jsonl.gz"
        assert finder.day_file_path.parent == finder.day_dir.parent

    def test_ancestor_dirs(self):
        finder = PathFinder.for_timestamp(utc(2015, 11, 22, 3, 4), BASE)
        assert finder.year_dir == BASE / "2015"
        assert finder.month_dir == BASE / "2015" / "11"
        assert finder.day_dir == BASE / "2015" / "11" / "22"

    def test_segments_are_zero_padded(self):
        finder = PathFinder.for_timestamp(utc(987, 1, 1, 0, 0), BASE)
        assert finder.year_dir.name == "0987"
        assert finder.minute_file_path.name == "00-00.jsonl"

    def test_seconds_are_ignored(self):
        a = PathFinder.for_timestamp(datetime(2015, 1, 1, 0, 7, 59, 999), BASE)
        b = PathFinder.for_timestamp(utc(2015, 1, 1, 0, 7), BASE)
        assert a == b

    def test_non_utc_is_converted(self):
        ts = datetime(2015, 1, 1, 0, 30, tzinfo=timezone(timedelta(hours=1)))
        finder = PathFinder.for_timestamp(ts, BASE)
        assert finder.minute_file_path == BASE / "2014" / "12" / "31" / "23-30.jsonl"

    def test_does_not_touch_filesystem(self, tmp_path):
        PathFinder.for_timestamp(utc(2015, 1, 1, 0, 0), tmp_path).minute_file_path
        assert list(tmp_path.iterdir()) == []

    def test_is_frozen(self):
        finder = PathFinder.for_timestamp(utc(2015, 1, 1, 0, 0), BASE)
        with pytest.raises(FrozenInstanceError):
            finder.day = 2  # type: ignore[misc]


class TestForDate:
    def test_day_paths(self):
        finder = PathFinder.for_date(date(2015, 3, 9), BASE)
        assert finder.day_dir == BASE / "2015" / "03" / "09"
        assert finder.day_file_path == BASE / "2015" / "03" / "09.jsonl.gz"

    def test_minute_file_unavailable(self):
        finder = PathFinder.for_date(date(2015, 3, 9), BASE)
        with pytest.raises(ValueError, match="no minute file"):
            finder.minute_file_path

    def test_same_day_paths_as_timestamp_variant(self):
        by_date = PathFinder.for_date(date(2015, 3, 9), BASE)
        by_ts = PathFinder.for_timestamp(utc(2015, 3, 9, 17, 45), BASE)
        assert by_date.day_file_path == by_ts.day_file_path
        assert by_date.day_dir == by_ts.day_dir


class TestFileNames:
    def test_minute_file_name(self):
        assert minute_file_name(0, 5) == "00-05.jsonl"
        assert minute_file_name(23, 59) == "23-59.jsonl"

    def test_minute_file_names_sort_chronologically(self):
        names = [minute_file_name(h, m) for h in range(24) for m in range(60)]
        assert names == sorted(names)

    def test_day_file_name(self):
        assert day_file_name(7) == "07.jsonl.gz"
