"""InfluxDB 2.x implementation of the time-series store.

This module maps store operations onto the influxdb-client buckets, write,
query and delete APIs and translates client failures into ``StoreError``.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Mapping

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.exceptions import InfluxDBError
from influxdb_client.client.write_api import SYNCHRONOUS, WriteOptions
from influxdb_client.domain.bucket_retention_rules import BucketRetentionRules
from influxdb_client.rest import ApiException
from urllib3.exceptions import HTTPError

from core.config import StslConfig
from core.constants import EPOCH
from core.errors import StoreError
from core.logging_config import get_logger
from core.types import Bucket, FieldValue, RowCursor
from store.flux_queries import measurement_predicate
from store.write_errors import WriteErrorDrain

_CLIENT_ERRORS = (ApiException, InfluxDBError, HTTPError)


class InfluxStore:
    """Connection factory bound to one database configuration."""

    def __init__(self, config: StslConfig) -> None:
        """Create store factory.

        Args:
            config: Resolved connection configuration.
        """
        self._config = config
        self._logger = get_logger(__name__, config.log_level)

    def connect(self) -> "InfluxConnection":
        """Open a client and verify the service answers.

        Returns:
            Open connection.

        Raises:
            StoreError: If the client cannot be created or the ping fails.
        """
        self._logger.info("store_connecting", url=self._config.url, org=self._config.org)
        with _translate_errors(f"connect to {self._config.url}"):
            client = InfluxDBClient(
                url=self._config.url,
                token=self._config.token,
                org=self._config.org,
            )
            reachable = client.ping()
        if not reachable:
            client.close()
            raise StoreError(
                f"Failed to connect to {self._config.url}: service did not answer ping. "
                "Check TIMESERIESDB_SERVICE_HOST and TIMESERIESDB_SERVICE_PORT_HTTP."
            )
        try:
            connection = InfluxConnection(client, self._config, self._logger)
        except Exception:
            client.close()
            raise
        self._logger.info("store_connected", url=self._config.url, org=self._config.org)
        return connection


class InfluxConnection:
    """Open InfluxDB connection writing into the configured bucket."""

    def __init__(self, client: Any, config: StslConfig, logger: Any) -> None:
        self._client = client
        self._config = config
        self._logger = logger
        self._drain = WriteErrorDrain(logger, config.write_error_queue_size)
        with _translate_errors("open write API"):
            self._write_api = self._open_write_api()
        self._drain.start()
        self._closed = False

    @property
    def write_failures(self) -> int:
        """Number of asynchronous write failures observed."""
        return self._drain.failure_count

    def find_bucket(self, name: str) -> Bucket | None:
        with _translate_errors(f"look up bucket {name}"):
            found = self._client.buckets_api().find_bucket_by_name(name)
        return _bucket_from_client(found) if found is not None else None

    def find_or_create_bucket(self, name: str, retention_seconds: int) -> Bucket:
        buckets_api = self._client.buckets_api()
        with _translate_errors(f"create bucket {name}"):
            existing = buckets_api.find_bucket_by_name(name)
            if existing is not None:
                self._logger.info("bucket_exists", bucket=name)
                return _bucket_from_client(existing)
            rules = [_retention_rule(retention_seconds)] if retention_seconds else []
            created = buckets_api.create_bucket(
                bucket_name=name,
                retention_rules=rules,
                org=self._config.org,
            )
        return _bucket_from_client(created)

    def delete_bucket(self, name: str) -> None:
        buckets_api = self._client.buckets_api()
        with _translate_errors(f"delete bucket {name}"):
            existing = buckets_api.find_bucket_by_name(name)
            if existing is None:
                raise StoreError(f"Failed to delete bucket {name}: bucket not found.")
            buckets_api.delete_bucket(existing)

    def update_bucket_retention(
        self,
        name: str,
        retention_seconds: int,
        shard_group_seconds: int,
    ) -> None:
        buckets_api = self._client.buckets_api()
        with _translate_errors(f"update retention of bucket {name}"):
            existing = buckets_api.find_bucket_by_name(name)
            if existing is None:
                raise StoreError(f"Failed to update bucket {name}: bucket not found.")
            existing.retention_rules = [_retention_rule(retention_seconds, shard_group_seconds)]
            buckets_api.update_bucket(bucket=existing)

    def write_point(
        self,
        measurement: str,
        tags: Mapping[str, str],
        fields: Mapping[str, FieldValue],
        timestamp: datetime,
    ) -> None:
        point = Point(measurement).time(timestamp, WritePrecision.NS)
        for tag_key, tag_value in tags.items():
            point = point.tag(tag_key, tag_value)
        for field_key, field_value in fields.items():
            point = point.field(field_key, field_value)
        with _translate_errors(f"write point to {measurement}"):
            self._write_api.write(
                bucket=self._config.database,
                org=self._config.org,
                record=point,
            )

    def flush(self) -> None:
        """Send buffered points by closing and reopening the write API."""
        with _translate_errors("flush buffered points"):
            self._write_api.close()
        self._write_api = self._open_write_api()

    def query(self, text: str) -> RowCursor:
        with _translate_errors("run query"):
            records = self._client.query_api().query_stream(text, org=self._config.org)
        return _record_values(records)

    def delete_range(self, measurement: str, start: datetime, stop: datetime) -> None:
        with _translate_errors(f"delete points of {measurement}"):
            self._client.delete_api().delete(
                start,
                stop,
                measurement_predicate(measurement),
                bucket=self._config.database,
                org=self._config.org,
            )

    def close(self) -> None:
        """Flush pending writes, join the error drain and close the client."""
        if self._closed:
            return
        self._closed = True
        try:
            with _translate_errors("flush buffered points on close"):
                self._write_api.close()
        finally:
            self._drain.close()
            self._client.close()
            self._logger.info("store_closed", write_failures=self._drain.failure_count)

    def _open_write_api(self) -> Any:
        if not self._config.batch_writes:
            return self._client.write_api(write_options=SYNCHRONOUS)
        options = WriteOptions(
            batch_size=self._config.batch_size,
            flush_interval=self._config.flush_interval_ms,
            max_retries=0,
        )
        return self._client.write_api(write_options=options, error_callback=self._drain.on_error)


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Re-raise client failures as ``StoreError``."""
    try:
        yield
    except _CLIENT_ERRORS as error:
        raise StoreError(f"Failed to {action}: {error}") from error


def _record_values(records: Iterator[Any]) -> RowCursor:
    """Yield record value mappings, translating failures while streaming."""
    with _translate_errors("read query results"):
        for record in records:
            yield dict(record.values)


def _retention_rule(retention_seconds: int, shard_group_seconds: int | None = None) -> Any:
    rule = BucketRetentionRules(type="expire", every_seconds=retention_seconds)
    if shard_group_seconds is not None:
        rule.shard_group_duration_seconds = shard_group_seconds
    return rule


def _bucket_from_client(bucket: Any) -> Bucket:
    """Convert a client bucket model into a ``Bucket``."""
    rules = bucket.retention_rules or []
    retention_seconds = int(rules[0].every_seconds or 0) if rules else 0
    return Bucket(
        name=str(bucket.name),
        retention_seconds=retention_seconds,
        created_at=bucket.created_at or EPOCH,
    )
