"""Query and predicate text builders.

This module renders the Flux queries and delete predicates used by the SDK,
escaping every interpolated name.
"""

from __future__ import annotations

from datetime import datetime, timezone


def latest_value_query(bucket: str, measurement: str, field: str, start: datetime) -> str:
    """Build a query returning the newest value of one field.

    Args:
        bucket: Bucket to read.
        measurement: Measurement name.
        field: Field key.
        start: Lower bound of the time range.

    Returns:
        Flux query text bounded by ``[start, now()]``.
    """
    return (
        f"from(bucket: {flux_string(bucket)})\n"
        f"  |> range(start: {flux_time(start)}, stop: now())\n"
        f"  |> filter(fn: (r) => r._measurement == {flux_string(measurement)}"
        f" and r._field == {flux_string(field)})\n"
        "  |> last()"
    )


def measurement_predicate(measurement: str) -> str:
    """Build a delete predicate matching one measurement."""
    return f"_measurement={flux_string(measurement)}"


def flux_string(value: str) -> str:
    """Quote a string literal for Flux and delete predicates."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def flux_time(value: datetime) -> str:
    """Render an RFC3339 UTC timestamp; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
