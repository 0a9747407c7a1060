"""Shared typed models.

This module defines immutable data models used by ingest, store,
SDK, and CLI layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Literal, Mapping, Union

from core.json_tree import JsonValue

FieldValue = Union[bool, int, float, str]
FlatRow = dict[str, JsonValue]
QueryRow = Mapping[str, object]
RowCursor = Iterator[QueryRow]
ArrayExemptionMode = Literal["legacy", "recursive"]


@dataclass(frozen=True)
class Bucket:
    """Retention-bounded database held by the time-series store.

    Attributes:
        name: Bucket name.
        retention_seconds: Expiry period; ``0`` means infinite.
        created_at: UTC creation timestamp reported by the store.
    """

    name: str
    retention_seconds: int
    created_at: datetime


@dataclass(frozen=True)
class WriteFailure:
    """Asynchronous batch write failure reported by the store client.

    Attributes:
        bucket: Target bucket of the failed batch.
        org: Target organization of the failed batch.
        payload_size: Size of the rejected line-protocol payload in bytes.
        error: Rendered error message.
    """

    bucket: str
    org: str
    payload_size: int
    error: str
