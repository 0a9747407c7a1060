"""Time-series store collaborator interfaces.

The SDK talks to the database only through these protocols, which keeps
transport, authentication and provisioning details out of the core.
"""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Protocol

from core.types import Bucket, FieldValue, RowCursor


class StoreConnection(Protocol):
    """Open connection to a time-series store.

    Every method raises ``StoreError`` on failure.
    """

    def find_bucket(self, name: str) -> Bucket | None:
        """Return the named bucket, or ``None`` when it does not exist."""

    def find_or_create_bucket(self, name: str, retention_seconds: int) -> Bucket:
        """Return the named bucket, creating it with the retention when missing."""

    def delete_bucket(self, name: str) -> None:
        """Delete the named bucket."""

    def update_bucket_retention(
        self,
        name: str,
        retention_seconds: int,
        shard_group_seconds: int,
    ) -> None:
        """Replace the bucket retention and shard group duration."""

    def write_point(
        self,
        measurement: str,
        tags: Mapping[str, str],
        fields: Mapping[str, FieldValue],
        timestamp: datetime,
    ) -> None:
        """Submit one point; the store may buffer it."""

    def flush(self) -> None:
        """Send every buffered point."""

    def query(self, text: str) -> RowCursor:
        """Run a query and return a lazily consumed cursor."""

    def delete_range(self, measurement: str, start: datetime, stop: datetime) -> None:
        """Delete every point of a measurement inside ``[start, stop]``."""

    def close(self) -> None:
        """Flush pending writes and release the connection."""


class TimeSeriesStore(Protocol):
    """Factory for store connections."""

    def connect(self) -> StoreConnection:
        """Open a connection; raises ``StoreError`` on failure."""
