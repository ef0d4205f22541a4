"""Structured logging for metricstore, built on structlog.

The CLI calls ``configure_logging()`` once per invocation.  It renders
events as JSON lines (``logging.format = "json"``) or as coloured
key=value text (``"text"``) on stderr, and binds a fresh ``run_id``
through contextvars so every event of one invocation can be grouped.

Event fields, in processor order:

  run_id      from merge_contextvars
  level       from add_log_level
  timestamp   ISO 8601 UTC, from TimeStamper
  bucket      ``type/name``, on loggers returned by ``bind_bucket()``

Library modules never configure anything; they call ``get_logger(__name__)``
and, where a bucket is in scope, ``bind_bucket(log, bucket)``.  Until
``configure_logging()`` runs, structlog's defaults apply.

    from metricstore.logging import bind_bucket, get_logger

    log = bind_bucket(get_logger(__name__), bucket_data)
    log.info("scan finished", delivered=42)
    # → {"bucket": "cpu/host-1", "event": "scan finished", "delivered": 42,
    #    "run_id": "a3f7b29c", "level": "info", "timestamp": "…"}
"""

import logging as _stdlib
import sys
import uuid

import structlog

from metricstore.config import Settings, get_settings
from metricstore.models.bucket import BucketData


def configure_logging(settings: Settings | None = None) -> str:
    """Configure structlog for this process and return the run_id.

    Calling again reconfigures the pipeline and binds a fresh run_id.
    """
    if settings is None:
        settings = get_settings()

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.logging.format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(_stdlib, settings.logging.level, _stdlib.INFO)
        ),
        context_class=dict,
        # stdout carries `metricstore read` output, so logs go to stderr.
        # Not cached: CLI test runners swap sys.stderr per invocation.
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    run_id = uuid.uuid4().hex[:8]
    structlog.contextvars.bind_contextvars(run_id=run_id)
    return run_id


def get_logger(name: str = "metricstore") -> structlog.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)


def bind_bucket(log: structlog.BoundLogger, bucket: BucketData) -> structlog.BoundLogger:
    """Return *log* with ``bucket="type/name"`` on every event."""
    return log.bind(bucket=bucket.label)
