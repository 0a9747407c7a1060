"""Public SDK surface for stsl.

This module provides a stable import path for library users.
It re-exports the client, the pure flatten and duration helpers,
and the error types callers are expected to handle.
"""

from __future__ import annotations

from core.config import StslConfig
from core.duration import format_duration, parse_duration, shard_group_duration
from core.errors import (
    InvalidInputError,
    InvalidUnitError,
    SerializationError,
    StoreError,
    StslConfigError,
    StslError,
)
from core.json_tree import JsonArray, JsonObject, JsonScalar, from_python, to_python
from core.types import Bucket
from ingest.flatten import flatten
from ingest.json_reader import decode_json, decode_json_object, decode_json_rows
from ingest.row_builder import build_fields
from store.influx_store import InfluxStore
from store.timeseries_sdk import TimeSeriesClient

__all__ = [
    "Bucket",
    "InfluxStore",
    "InvalidInputError",
    "InvalidUnitError",
    "JsonArray",
    "JsonObject",
    "JsonScalar",
    "SerializationError",
    "StoreError",
    "StslConfig",
    "StslConfigError",
    "StslError",
    "TimeSeriesClient",
    "build_fields",
    "decode_json",
    "decode_json_object",
    "decode_json_rows",
    "flatten",
    "format_duration",
    "from_python",
    "parse_duration",
    "shard_group_duration",
    "to_python",
]
