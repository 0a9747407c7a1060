"""Python SDK for time-series database operations.

This module exposes one handle per logical database. It turns JSON
payloads into point writes and wraps bucket lifecycle, query and write
primitives, delegating all transport to a time-series store.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
import math
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence, cast

from core.config import StslConfig
from core.constants import EPOCH
from core.duration import format_duration, parse_duration, shard_group_duration
from core.errors import InvalidInputError, StslError
from core.json_tree import JsonObject, from_python, scalar_kind
from core.logging_config import get_logger
from core.types import ArrayExemptionMode, Bucket, FieldValue, RowCursor
from ingest.json_reader import decode_json_object, decode_json_rows
from ingest.pipeline import PreparedRow, prepare_row, prepare_rows
from store.flux_queries import latest_value_query
from store.influx_store import InfluxStore
from store.protocols import StoreConnection, TimeSeriesStore


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimeSeriesClient:
    """Handle bound to one logical database.

    The connection and the cached bucket are shared mutable state: callers
    running lifecycle operations concurrently on one instance must serialize
    them. Flattening and duration parsing hold no shared state.
    """

    def __init__(
        self,
        config: StslConfig,
        store: TimeSeriesStore | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Create SDK client.

        Args:
            config: Resolved connection and behavior configuration.
            store: Store factory; InfluxDB when omitted.
            clock: Source of point timestamps and query upper bounds.
        """
        self._config = config
        self._store = store if store is not None else InfluxStore(config)
        self._clock = clock
        self._logger = get_logger(__name__, config.log_level)
        self._connection: StoreConnection | None = None
        self._bucket: Bucket | None = None

    def __enter__(self) -> "TimeSeriesClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def database_name(self) -> str:
        """Database (bucket) name this client writes to."""
        return self._config.database

    @property
    def organization(self) -> str:
        """Organization owning the database."""
        return self._config.org

    @property
    def retention_seconds(self) -> int | None:
        """Last known retention in seconds, or ``None`` when nothing is cached."""
        return self._bucket.retention_seconds if self._bucket else None

    @property
    def created_at(self) -> datetime | None:
        """Last known database creation time."""
        return self._bucket.created_at if self._bucket else None

    def connect(self) -> None:
        """Open the store connection if it is not open yet.

        Raises:
            StoreError: If the store cannot be reached.
        """
        self._open_connection()

    def close(self) -> None:
        """Flush pending writes and release the connection."""
        if self._connection is None:
            return
        connection = self._connection
        self._connection = None
        with self._log_failure("connection_close_failed"):
            connection.close()
        self._logger.info("connection_closed", database=self.database_name)

    def create_database(self, retention: str = "") -> Bucket:
        """Create the database, or adopt it when it already exists.

        Args:
            retention: Compound duration text; empty means infinite.

        Returns:
            Bucket as held by the store. An existing bucket keeps its policy.

        Raises:
            InvalidUnitError: If retention text is malformed.
            StoreError: If the store rejects the request.
        """
        with self._log_failure("database_create_failed", retention=retention):
            retention_seconds = parse_duration(retention)
            bucket = self._open_connection().find_or_create_bucket(
                self.database_name, retention_seconds
            )
        self._bucket = bucket
        self._logger.info(
            "database_created",
            database=bucket.name,
            requested_retention=format_duration(retention_seconds),
            retention=format_duration(bucket.retention_seconds),
            created_at=bucket.created_at.isoformat(),
        )
        return bucket

    def delete_database(self) -> None:
        """Delete the database and forget its cached policy.

        Raises:
            StoreError: If the store rejects the request.
        """
        with self._log_failure("database_delete_failed"):
            self._open_connection().delete_bucket(self.database_name)
        self._bucket = None
        self._logger.info("database_deleted", database=self.database_name)

    def update_retention_policy(self, retention: str) -> None:
        """Change the database retention and its shard group duration.

        Args:
            retention: Compound duration text; empty means infinite.

        Raises:
            InvalidUnitError: If retention text is malformed.
            StoreError: If the store rejects the request.
        """
        with self._log_failure("retention_update_failed", retention=retention):
            retention_seconds = parse_duration(retention)
            shard_group_seconds = shard_group_duration(retention_seconds)
            self._open_connection().update_bucket_retention(
                self.database_name, retention_seconds, shard_group_seconds
            )
            bucket = self._cached_bucket()
        if bucket is not None:
            self._bucket = replace(bucket, retention_seconds=retention_seconds)
        self._logger.info(
            "retention_updated",
            database=self.database_name,
            retention=format_duration(retention_seconds),
            shard_group=format_duration(shard_group_seconds),
        )

    def drop_measurement(self, measurement: str) -> None:
        """Delete every point of a measurement since database creation.

        Raises:
            StoreError: If the store rejects the request.
        """
        with self._log_failure("measurement_drop_failed", measurement=measurement):
            start = self._window_start()
            self._open_connection().delete_range(measurement, start, self._clock())
        self._logger.info("measurement_dropped", measurement=measurement)

    def set(self, measurement: str, key: str, value: FieldValue) -> None:
        """Write one field as a new untagged point.

        Each call adds a row; earlier values stay queryable.
        """
        self.write_point(measurement, {}, {key: value})

    def get(self, measurement: str, key: str) -> object | None:
        """Return the newest value of a field, or ``None`` when there is none.

        Raises:
            StoreError: If the query fails.
        """
        with self._log_failure("point_get_failed", measurement=measurement, key=key):
            query_text = latest_value_query(
                self.database_name, measurement, key, self._window_start()
            )
            rows = self._open_connection().query(query_text)
            latest = _latest_row(rows)
        value = latest.get("_value") if latest is not None else None
        self._logger.debug("point_get", measurement=measurement, key=key, found=latest is not None)
        return value

    def query(self, text: str) -> RowCursor:
        """Run a query and return a lazily consumed cursor.

        Raises:
            StoreError: If the store rejects the query.
        """
        with self._log_failure("query_failed", query=text):
            cursor = self._open_connection().query(text)
        self._logger.debug("query_started", query=text)
        return cursor

    def write_point(
        self,
        measurement: str,
        tags: Mapping[str, str],
        fields: Mapping[str, FieldValue],
    ) -> None:
        """Write one point timestamped with the current time.

        The store may buffer the point; call ``flush`` or ``close`` to make
        sure it is sent.

        Raises:
            InvalidInputError: If fields are empty or of an unsupported kind.
            StoreError: If the store rejects the write.
        """
        with self._log_failure("point_write_failed", measurement=measurement):
            _validate_point(measurement, tags, fields)
            self._open_connection().write_point(measurement, tags, fields, self._clock())
        self._logger.debug(
            "point_written",
            database=self.database_name,
            measurement=measurement,
            tags=dict(tags),
            field_count=len(fields),
        )

    def flush(self) -> None:
        """Send every buffered point."""
        if self._connection is None:
            return
        with self._log_failure("flush_failed"):
            self._connection.flush()

    def insert_json(
        self,
        measurement: str,
        ignore_keys: Iterable[str],
        payload: bytes | str,
    ) -> None:
        """Flatten one JSON object and write it as a single point.

        Args:
            measurement: Target measurement.
            ignore_keys: Keys whose subtrees are stored as JSON text.
            payload: UTF-8 JSON object.

        Raises:
            InvalidInputError: If payload is not a JSON object or yields no fields.
            SerializationError: If an ignored subtree cannot be serialized.
            StoreError: If the store rejects the write.
        """
        with self._log_failure("json_insert_failed", measurement=measurement):
            row = decode_json_object(payload)
            prepared = prepare_row(row, ignore_keys, self._array_exemption)
        self._log_prepared(measurement, 0, prepared)
        self.write_point(measurement, {}, prepared.fields)

    def insert_json_array(
        self,
        measurement: str,
        ignore_keys: Iterable[str],
        payload: bytes | str,
        all_or_nothing: bool = False,
    ) -> int:
        """Write each object of a JSON array as its own point.

        Args:
            measurement: Target measurement.
            ignore_keys: Keys whose subtrees are stored as JSON text.
            payload: UTF-8 JSON array of objects.
            all_or_nothing: Prepare every row before the first write.

        Returns:
            Number of points written.

        Raises:
            InvalidInputError: If payload is not an array of objects.
            SerializationError: If an ignored subtree cannot be serialized.
            StoreError: If the store rejects a write.
        """
        with self._log_failure("json_array_insert_failed", measurement=measurement):
            rows = decode_json_rows(payload)
        return self.insert_rows(measurement, rows, ignore_keys, all_or_nothing)

    def insert_rows(
        self,
        measurement: str,
        rows: Sequence[JsonObject | Mapping[str, Any]],
        ignore_keys: Iterable[str],
        all_or_nothing: bool = False,
    ) -> int:
        """Write already-decoded rows as one point each.

        Without ``all_or_nothing`` rows are prepared and written one at a
        time: when row k fails, points for earlier rows stay written and
        later rows are skipped. With it, every row is flattened and validated
        first, so a bad row aborts the call before anything is written.

        Returns:
            Number of points written.
        """
        ignore_set = frozenset(ignore_keys)
        with self._log_failure("rows_insert_failed", measurement=measurement):
            trees = [_as_object(row) for row in rows]
        if all_or_nothing:
            return self._insert_prepared_rows(measurement, trees, ignore_set)
        for index, tree in enumerate(trees):
            with self._log_failure("rows_insert_failed", measurement=measurement, row=index):
                prepared = prepare_row(tree, ignore_set, self._array_exemption)
            self._log_prepared(measurement, index, prepared)
            self.write_point(measurement, {}, prepared.fields)
        return len(trees)

    def _insert_prepared_rows(
        self,
        measurement: str,
        trees: list[JsonObject],
        ignore_set: frozenset[str],
    ) -> int:
        with self._log_failure("rows_insert_failed", measurement=measurement, all_or_nothing=True):
            prepared_rows = prepare_rows(trees, ignore_set, self._array_exemption)
            for prepared in prepared_rows:
                _validate_point(measurement, {}, prepared.fields)
        for index, prepared in enumerate(prepared_rows):
            self._log_prepared(measurement, index, prepared)
            self.write_point(measurement, {}, prepared.fields)
        return len(prepared_rows)

    @property
    def _array_exemption(self) -> ArrayExemptionMode:
        return "recursive" if self._config.array_exemption == "recursive" else "legacy"

    def _open_connection(self) -> StoreConnection:
        if self._connection is None:
            with self._log_failure("connection_failed"):
                self._connection = self._store.connect()
            self._logger.info("connection_opened", database=self.database_name)
        return self._connection

    def _cached_bucket(self) -> Bucket | None:
        """Return the cached bucket, reading it through from the store once."""
        if self._bucket is None:
            self._bucket = self._open_connection().find_bucket(self.database_name)
        return self._bucket

    def _window_start(self) -> datetime:
        bucket = self._cached_bucket()
        return bucket.created_at if bucket is not None else EPOCH

    def _log_prepared(self, measurement: str, row_index: int, prepared: PreparedRow) -> None:
        self._logger.debug(
            "json_row_flattened",
            measurement=measurement,
            row=row_index,
            fields=sorted(prepared.fields),
            dropped=list(prepared.dropped),
        )

    @contextmanager
    def _log_failure(self, event: str, **fields: object) -> Iterator[None]:
        """Log a failure at the call site and re-raise it unchanged."""
        try:
            yield
        except StslError as error:
            self._logger.error(
                event,
                database=self.database_name,
                error=str(error),
                error_type=type(error).__name__,
                **fields,
            )
            raise


def _validate_point(
    measurement: str,
    tags: Mapping[str, str],
    fields: Mapping[str, FieldValue],
) -> None:
    """Reject points the store cannot represent.

    Raises:
        InvalidInputError: For an empty measurement, empty fields,
            non-string tags, null fields, or non-finite floats.
    """
    if not measurement:
        raise InvalidInputError("Measurement name must not be empty.")
    if not fields:
        raise InvalidInputError(
            f"Point for measurement {measurement} has no fields: "
            "a point needs at least one bool, int, float or string field."
        )
    for tag_key, tag_value in tags.items():
        if not isinstance(tag_value, str):
            raise InvalidInputError(
                f"Tag {tag_key} must be a string, got {type(tag_value).__name__}."
            )
    for field_key, field_value in fields.items():
        if scalar_kind(field_value) == "other":
            raise InvalidInputError(f"Field {field_key} must not be null.")
        if isinstance(field_value, float) and not math.isfinite(field_value):
            raise InvalidInputError(
                f"Field {field_key} must be a finite number, got {field_value}."
            )


def _as_object(row: JsonObject | Mapping[str, Any]) -> JsonObject:
    if isinstance(row, JsonObject):
        return row
    return cast(JsonObject, from_python(dict(row)))


def _latest_row(rows: Iterable[Mapping[str, object]]) -> Mapping[str, object] | None:
    """Pick the row with the greatest ``_time``; later rows win ties."""
    latest: Mapping[str, object] | None = None
    for row in rows:
        if latest is None or _row_time(row) >= _row_time(latest):
            latest = row
    return latest


def _row_time(row: Mapping[str, object]) -> datetime:
    value = row.get("_time")
    return value if isinstance(value, datetime) else EPOCH
