"""Timestamp extraction and normalization.

``TimestampFunction(field, pattern)`` is callable on a payload mapping and
returns the payload's timestamp as a UTC ``datetime`` truncated to the
minute.  Minute truncation is what makes per-minute file partitioning work:
every record stored in ``HH-MM.jsonl`` carries exactly that minute.

Contract:

- ``None`` payload           → ``None`` ("no timestamp", not an error)
- field missing / blank      → :class:`TimestampError`
- field not a string         → :class:`TimestampError`
- text does not parse        → :class:`TimestampError`
- naive result               → interpreted as UTC
- aware result               → converted to UTC
- pattern without a date     → date is 1970-01-01

Without a pattern the text is parsed by :func:`dateutil.parser.parse`, which
accepts ISO 8601 as well as loose forms such as ``1970-1-1T16:10``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from dateutil import parser as _dateutil_parser

from metricstore.config import Settings

DEFAULT_TIMESTAMP_FIELD = "timestamp"

# strptime directives that set any part of the date.
_DATE_DIRECTIVES = frozenset("YymdjbBhUWGVcx")
_DIRECTIVE = re.compile(r"%(.)")


class TimestampError(ValueError):
    """A payload's timestamp field is missing, blank, or unparseable."""


def truncate_to_minute(value: datetime) -> datetime:
    """Return *value* in UTC with seconds and microseconds zeroed.

    Naive datetimes are taken to already be UTC.  Idempotent.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    else:
        value = value.astimezone(UTC)
    return value.replace(second=0, microsecond=0)


def _has_date(pattern: str) -> bool:
    return any(d in _DATE_DIRECTIVES for d in _DIRECTIVE.findall(pattern))


def parse_timestamp(text: str, pattern: str | None = None) -> datetime:
    """Parse *text* and normalize it with :func:`truncate_to_minute`.

    Raises:
        TimestampError: *text* does not match *pattern* (or, without a
                        pattern, is not recognisable as a date-time).
    """
    try:
        if pattern:
            parsed = datetime.strptime(text, pattern)
            if not _has_date(pattern):
                parsed = parsed.replace(year=1970, month=1, day=1)
        else:
            parsed = _dateutil_parser.parse(text)
    except (ValueError, OverflowError) as exc:
        raise TimestampError(f"Cannot parse timestamp {text!r}: {exc}") from exc
    return truncate_to_minute(parsed)


def extract_field(payload: Mapping[str, Any], path: str) -> Any:
    """Follow a dotted *path* through nested mappings; ``None`` if absent."""
    node: Any = payload
    for key in path.split("."):
        if not isinstance(node, Mapping) or key not in node:
            return None
        node = node[key]
    return node


class TimestampFunction:
    """Callable extracting the minute-precision UTC timestamp of a payload.

    Args:
        field:   Dotted path of the timestamp field.
        pattern: Optional :func:`~datetime.datetime.strptime` format.
    """

    def __init__(self, field: str = DEFAULT_TIMESTAMP_FIELD, pattern: str | None = None) -> None:
        self.field = field
        self.pattern = pattern

    @classmethod
    def from_settings(cls, settings: Settings) -> TimestampFunction:
        return cls(settings.timestamp.field, settings.timestamp.pattern)

    def __call__(self, payload: Mapping[str, Any] | None) -> datetime | None:
        if payload is None:
            return None
        value = extract_field(payload, self.field)
        if value is None:
            raise TimestampError(f"Timestamp field {self.field!r} is missing")
        if not isinstance(value, str):
            raise TimestampError(
                f"Timestamp field {self.field!r} must be a string, got {type(value).__name__}"
            )
        if not value.strip():
            raise TimestampError(f"Timestamp field {self.field!r} is blank")
        return parse_timestamp(value.strip(), self.pattern)

    def __repr__(self) -> str:
        return f"TimestampFunction(field={self.field!r}, pattern={self.pattern!r})"
