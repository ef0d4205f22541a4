"""CLI root — entry point for all metricstore subcommands.

Entry points:
  uv run metricstore    (recommended)
  python -m metricstore

Command surface:
  metricstore read          print a bucket's records for a time interval
  metricstore write         append JSON Lines payloads to a bucket
  metricstore consolidate   fold one day's minute files into a day file
  metricstore paths         show the files a timestamp maps to
  metricstore config show   print resolved configuration

Buckets are addressed as ``TYPE NAME`` and live under
``storage.data_root/TYPE/NAME``.
"""

import json
import sys
from pathlib import Path

import typer

from metricstore import __version__
from metricstore.logging import bind_bucket, get_logger

app = typer.Typer(
    name="metricstore",
    help="Time-partitioned filesystem storage for JSON metrics.",
    no_args_is_help=True,
)

_log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Global callback — runs before every subcommand
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"metricstore {__version__}")
        raise typer.Exit()


@app.callback()
def _main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Print version and exit.",
    ),
) -> None:
    """Time-partitioned filesystem storage for JSON metrics."""
    # Eager options (--version) raise typer.Exit() before this body runs,
    # so configure_logging() is only called for real subcommands.
    from metricstore.logging import configure_logging

    configure_logging()


def _parse_instant(value: str, option: str):
    from metricstore.timestamps import TimestampError, parse_timestamp

    try:
        return parse_timestamp(value)
    except TimestampError as exc:
        raise typer.BadParameter(str(exc), param_hint=option) from exc


# ---------------------------------------------------------------------------
# read
# ---------------------------------------------------------------------------


@app.command("read")
def read(
    bucket_type: str = typer.Argument(..., metavar="TYPE", help="Bucket type."),
    name: str = typer.Argument(..., metavar="NAME", help="Bucket name."),
    start: str = typer.Option(..., "--start", "-s", help="Inclusive start (ISO 8601, UTC if no zone)."),
    end: str = typer.Option(..., "--end", "-e", help="Exclusive end (ISO 8601, UTC if no zone)."),
    limit: int = typer.Option(
        0,
        "--limit",
        help="Stop after this many records.  0 = no limit.",
    ),
) -> None:
    """Print every record of a bucket in [START, END), one JSON object per line.

    Timestamps are truncated to the minute, so a record stamped 00:04:59
    belongs to 00:04.  Exit code 1 when the bucket's files cannot be read.
    """
    from metricstore.bucket import ReadableBucket
    from metricstore.config import get_settings
    from metricstore.models.metric import Interval

    start_ts = _parse_instant(start, "--start")
    end_ts = _parse_instant(end, "--end")
    try:
        interval = Interval(start_ts, end_ts)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--start") from exc

    bucket = ReadableBucket.from_settings(get_settings(), bucket_type, name)
    log = bind_bucket(_log, bucket.bucket_data)
    count = 0

    def emit(metric) -> bool:
        nonlocal count
        typer.echo(json.dumps(metric.payload, separators=(",", ":")))
        count += 1
        return not limit or count < limit

    result = bucket.read(interval, emit)

    if result.failed:
        log.error("read failed", detail=str(result.error))
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(1)

    log.info("read finished", outcome=result.outcome.value, delivered=result.delivered)


# ---------------------------------------------------------------------------
# write
# ---------------------------------------------------------------------------


@app.command("write")
def write(
    bucket_type: str = typer.Argument(..., metavar="TYPE", help="Bucket type."),
    name: str = typer.Argument(..., metavar="NAME", help="Bucket name."),
    source: Path | None = typer.Argument(
        None,
        metavar="[FILE]",
        exists=True,
        dir_okay=False,
        readable=True,
        help="JSON Lines file to append.  Reads stdin when omitted.",
    ),
) -> None:
    """Append JSON Lines payloads to a bucket.

    Each non-blank line must be a JSON object carrying the configured
    timestamp field.  Lines that are not, or that fall on an already
    consolidated day, are reported on stderr and skipped; the exit code is
    1 if any line was rejected.
    """
    from metricstore.config import get_settings
    from metricstore.reader import StorageIOError
    from metricstore.writer import WritableBucket

    writer = WritableBucket.from_settings(get_settings(), bucket_type, name)
    log = bind_bucket(_log, writer.bucket_data)
    stream = source.open(encoding="utf-8") if source is not None else sys.stdin
    accepted = 0
    rejected = 0
    try:
        with writer as bucket:
            for line_number, raw in enumerate(stream, start=1):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    payload = json.loads(raw)
                    if not isinstance(payload, dict):
                        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
                    bucket.write(payload)
                except ValueError as exc:
                    rejected += 1
                    typer.echo(f"  line {line_number}: {exc}", err=True)
                    continue
                accepted += 1
    except StorageIOError as exc:
        log.error("write failed", detail=str(exc))
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc
    finally:
        if source is not None:
            stream.close()

    typer.echo(f"Write complete: {accepted} accepted, {rejected} rejected")
    log.info("write finished", accepted=accepted, rejected=rejected)
    if rejected:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# consolidate
# ---------------------------------------------------------------------------


@app.command("consolidate")
def consolidate(
    bucket_type: str = typer.Argument(..., metavar="TYPE", help="Bucket type."),
    name: str = typer.Argument(..., metavar="NAME", help="Bucket name."),
    day: str = typer.Option(..., "--date", "-d", help="Day to consolidate (YYYY-MM-DD)."),
) -> None:
    """Fold one day's minute files into a single gzip day file.

    Only consolidate days that no longer receive writes: once the day file
    exists, later writes into that day are rejected.
    """
    from datetime import date

    from metricstore.config import get_settings
    from metricstore.reader import StorageIOError
    from metricstore.writer import DayConsolidatedError, WritableBucket

    try:
        target = date.fromisoformat(day)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--date") from exc

    try:
        with WritableBucket.from_settings(get_settings(), bucket_type, name) as bucket:
            count = bucket.consolidate(target)
    except (DayConsolidatedError, StorageIOError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc

    if count:
        typer.echo(f"Consolidated {count} record(s) for {target}")
    else:
        typer.echo(f"Nothing to consolidate for {target}")


# ---------------------------------------------------------------------------
# paths
# ---------------------------------------------------------------------------


@app.command("paths")
def paths(
    bucket_type: str = typer.Argument(..., metavar="TYPE", help="Bucket type."),
    name: str = typer.Argument(..., metavar="NAME", help="Bucket name."),
    at: str = typer.Option(..., "--at", help="Timestamp (ISO 8601, UTC if no zone)."),
) -> None:
    """Show the minute and day file a timestamp maps to, and whether they exist."""
    from metricstore.config import get_settings
    from metricstore.models.bucket import BucketData
    from metricstore.paths import PathFinder

    bucket = BucketData.from_settings(get_settings(), bucket_type, name)
    finder = PathFinder.for_timestamp(_parse_instant(at, "--at"), bucket.base_path)

    for label, path in (("minute", finder.minute_file_path), ("day", finder.day_file_path)):
        state = "present" if path.is_file() else "absent"
        typer.echo(f"  {label:6}  {path}  ({state})")


# ---------------------------------------------------------------------------
# config subcommands
# ---------------------------------------------------------------------------

_config_app = typer.Typer(help="Inspect resolved configuration.")
app.add_typer(_config_app, name="config")


@_config_app.command("show")
def config_show() -> None:
    """Print the fully-resolved configuration and exit.

    Shows which config file was loaded and the final value of every setting
    after environment-variable overrides are applied.  Useful for confirming
    that METRICSTORE_* overrides are being picked up correctly.
    """
    from metricstore.config import _config_file, get_settings

    settings = get_settings()

    typer.echo(f"\n  config : {_config_file()}\n")

    for section_name, section in settings.model_dump().items():
        typer.echo(f"  [{section_name}]")
        width = max(len(k) for k in section)
        for key, val in section.items():
            typer.echo(f"  {key.ljust(width)} = {val}")
        typer.echo()
