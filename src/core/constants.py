"""Core constants used across stsl modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from datetime import datetime, timezone

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8086
DEFAULT_ORG = "influxdata"
DEFAULT_DATABASE = "default"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_BATCH_SIZE = 1000
DEFAULT_FLUSH_INTERVAL_MS = 1000
DEFAULT_WRITE_ERROR_QUEUE_SIZE = 256
DEFAULT_ARRAY_EXEMPTION = "legacy"
SUPPORTED_LOG_LEVELS = ("debug", "info", "warn", "warning", "error")
SUPPORTED_ARRAY_EXEMPTIONS = ("legacy", "recursive")

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR
SECONDS_PER_WEEK = 7 * SECONDS_PER_DAY
DURATION_UNITS = (
    ("w", SECONDS_PER_WEEK),
    ("d", SECONDS_PER_DAY),
    ("h", SECONDS_PER_HOUR),
    ("m", SECONDS_PER_MINUTE),
    ("s", 1),
)
INFINITE_RETENTION_SECONDS = 0
LONG_RETENTION_THRESHOLD_SECONDS = 60 * SECONDS_PER_DAY
MEDIUM_RETENTION_THRESHOLD_SECONDS = 2 * SECONDS_PER_DAY
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

PATH_SEPARATOR = "."
WRITE_ERROR_THREAD_NAME = "stsl-write-errors"
