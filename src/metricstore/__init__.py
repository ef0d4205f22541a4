"""metricstore — time-partitioned filesystem storage for JSON metrics.

Records are appended to per-minute JSON Lines files laid out as
``<bucket>/YYYY/MM/DD/HH-MM.jsonl`` and optionally consolidated into one
gzip day file per calendar day.  Range queries walk the directory layout
itself; there is no separate index.
"""

__version__ = "0.1.0"
