"""Bucket identity.

A bucket is a named, typed stream of metrics backed by one base directory.
Buckets are addressed by ``(type, name)``; by default they live at::

    <data_root>/<type>/<name>/
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from metricstore.config import Settings


def _check_segment(kind: str, value: str) -> None:
    if not value or value in (".", "..") or "/" in value or "\\" in value:
        raise ValueError(f"bucket {kind} must be a single path segment, got {value!r}")


@dataclass(frozen=True)
class BucketData:
    """Value object describing one bucket: ``(name, type)`` plus its base path."""

    name: str
    type: str
    base_path: Path

    @classmethod
    def under(cls, data_root: Path, bucket_type: str, name: str) -> BucketData:
        """Derive the conventional base path ``data_root/type/name``."""
        _check_segment("type", bucket_type)
        _check_segment("name", name)
        return cls(name=name, type=bucket_type, base_path=data_root / bucket_type / name)

    @classmethod
    def from_settings(cls, settings: Settings, bucket_type: str, name: str) -> BucketData:
        return cls.under(settings.storage.data_root, bucket_type, name)

    @property
    def label(self) -> str:
        """``type/name``, the short form used in log events."""
        return f"{self.type}/{self.name}"

    def __str__(self) -> str:
        return f"{self.label} ({self.base_path})"
