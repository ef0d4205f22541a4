"""Tests for bucket identity and the read-only bucket view."""

from datetime import date
from pathlib import Path

import pytest
from conftest import payload, utc, write_day_file, write_minute_file

from metricstore.bucket import ReadableBucket
from metricstore.config import Settings
from metricstore.models.bucket import BucketData
from metricstore.models.metric import Interval
from metricstore.scan import FilesystemPresence
from metricstore.timestamps import TimestampFunction


class TestBucketData:
    def test_under_derives_base_path(self, tmp_path):
        data = BucketData.under(tmp_path, "cpu", "host-1")
        assert data.base_path == tmp_path / "cpu" / "host-1"
        assert (data.type, data.name) == ("cpu", "host-1")

    def test_from_settings(self, tmp_path):
        s = Settings(storage={"data_root": str(tmp_path)})
        assert BucketData.from_settings(s, "mem", "db").base_path == tmp_path / "mem" / "db"

    @pytest.mark.parametrize("bad", ["", ".", "..", "a/b", "a\\b"])
    def test_rejects_path_like_names(self, tmp_path, bad):
        with pytest.raises(ValueError, match="single path segment"):
            BucketData.under(tmp_path, "cpu", bad)

    def test_identity_is_value_based(self, tmp_path):
        assert BucketData.under(tmp_path, "cpu", "a") == BucketData.under(tmp_path, "cpu", "a")

    def test_label_and_str(self, tmp_path):
        data = BucketData.under(tmp_path, "cpu", "host-1")
        assert data.label == "cpu/host-1"
        assert str(data) == f"cpu/host-1 ({tmp_path / 'cpu' / 'host-1'})"


class TestInterval:
    def test_start_after_end_rejected(self):
        with pytest.raises(ValueError, match="after end"):
            Interval(utc(2015, 1, 2), utc(2015, 1, 1))

    def test_same_minute_is_empty_not_inverted(self):
        Interval(utc(2015, 1, 1, 0, 0, 30), utc(2015, 1, 1, 0, 0, 10))

    def test_normalized(self):
        start, end = Interval(utc(2015, 1, 1, 0, 0, 30), utc(2015, 1, 1, 0, 9, 59)).normalized()
        assert (start, end) == (utc(2015, 1, 1, 0, 0), utc(2015, 1, 1, 0, 9))


class TestReadableBucket:
    def test_name_and_type(self, bucket_data):
        bucket = ReadableBucket(bucket_data, TimestampFunction())
        assert bucket.name == "host-1"
        assert bucket.type == "cpu"

    def test_read_delivers_records(self, bucket_data):
        write_day_file(bucket_data.base_path, date(2015, 1, 1), [payload(utc(2015, 1, 1, 8))])
        ts = utc(2015, 1, 2, 9, 30)
        write_minute_file(bucket_data.base_path, ts, [payload(ts)])

        bucket = ReadableBucket(bucket_data, TimestampFunction())
        seen = []
        result = bucket.read(Interval(utc(2015, 1, 1), utc(2015, 1, 3)), lambda m: seen.append(m) or True)

        assert result.completed
        assert [m.timestamp for m in seen] == [utc(2015, 1, 1, 8), ts]

    def test_custom_timestamp_field(self, bucket_data):
        ts = utc(2015, 1, 1, 0, 1)
        write_minute_file(bucket_data.base_path, ts, [{"at": "2015-01-01 00:01:42"}])
        bucket = ReadableBucket(bucket_data, TimestampFunction(field="at"))
        seen = []
        bucket.read(Interval(utc(2015, 1, 1), utc(2015, 1, 2)), lambda m: seen.append(m) or True)
        assert [m.timestamp for m in seen] == [ts]

    def test_injected_presence_is_used(self, bucket_data):
        class NothingThere(FilesystemPresence):
            def is_file(self, path: Path) -> bool:
                return False

        ts = utc(2015, 1, 1, 0, 1)
        write_minute_file(bucket_data.base_path, ts, [payload(ts)])
        bucket = ReadableBucket(bucket_data, TimestampFunction(), presence=NothingThere())
        result = bucket.read(Interval(utc(2015, 1, 1), utc(2015, 1, 2)), lambda m: True)
        assert result.delivered == 0

    def test_from_settings(self, tmp_path):
        s = Settings(storage={"data_root": str(tmp_path)}, timestamp={"field": "t"})
        bucket = ReadableBucket.from_settings(s, "cpu", "host-1")
        assert bucket.bucket_data.base_path == tmp_path / "cpu" / "host-1"
        assert bucket.timestamp_function.field == "t"


class TestPathFinderAccess:
    def test_for_timestamp(self, bucket_data):
        bucket = ReadableBucket(bucket_data, TimestampFunction())
        finder = bucket.path_finder(utc(2015, 1, 2, 3, 4))
        assert finder.minute_file_path == bucket_data.base_path / "2015" / "01" / "02" / "03-04.jsonl"

    def test_for_date(self, bucket_data):
        bucket = ReadableBucket(bucket_data, TimestampFunction())
        finder = bucket.path_finder(date(2015, 1, 2))
        assert finder.day_file_path == bucket_data.base_path / "2015" / "01" / "02.jsonl.gz"
        assert finder.hour is None
