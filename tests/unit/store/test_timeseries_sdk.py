"""Unit tests for the time-series SDK client."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import pytest

from core.config import StslConfig
from core.constants import EPOCH
from core.errors import InvalidInputError, InvalidUnitError, SerializationError, StoreError
from core.types import Bucket
from store.timeseries_sdk import TimeSeriesClient
from tests.fixture_paths import fixture_path

_START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class _FakeConnection:
    def __init__(self) -> None:
        self.buckets: dict[str, Bucket] = {}
        self.points: list[tuple[str, dict[str, str], dict[str, Any], datetime]] = []
        self.retention_updates: list[tuple[str, int, int]] = []
        self.deletes: list[tuple[str, datetime, datetime]] = []
        self.queries: list[str] = []
        self.rows: list[Mapping[str, object]] = []
        self.flushes = 0
        self.closed = False
        self.fail_writes = False

    def find_bucket(self, name: str) -> Bucket | None:
        return self.buckets.get(name)

    def find_or_create_bucket(self, name: str, retention_seconds: int) -> Bucket:
        if name not in self.buckets:
            self.buckets[name] = Bucket(name, retention_seconds, _START)
        return self.buckets[name]

    def delete_bucket(self, name: str) -> None:
        if name not in self.buckets:
            raise StoreError(f"Failed to delete bucket {name}: bucket not found.")
        del self.buckets[name]

    def update_bucket_retention(
        self,
        name: str,
        retention_seconds: int,
        shard_group_seconds: int,
    ) -> None:
        self.retention_updates.append((name, retention_seconds, shard_group_seconds))

    def write_point(
        self,
        measurement: str,
        tags: Mapping[str, str],
        fields: Mapping[str, Any],
        timestamp: datetime,
    ) -> None:
        if self.fail_writes:
            raise StoreError("Failed to write point: unauthorized")
        self.points.append((measurement, dict(tags), dict(fields), timestamp))

    def flush(self) -> None:
        self.flushes += 1

    def query(self, text: str) -> Any:
        self.queries.append(text)
        return iter(self.rows)

    def delete_range(self, measurement: str, start: datetime, stop: datetime) -> None:
        self.deletes.append((measurement, start, stop))

    def close(self) -> None:
        self.closed = True


class _FakeStore:
    def __init__(self) -> None:
        self.connection = _FakeConnection()
        self.connects = 0

    def connect(self) -> _FakeConnection:
        self.connects += 1
        return self.connection


class _Clock:
    def __init__(self) -> None:
        self.now = _START + timedelta(hours=1)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def _client(**overrides: Any) -> tuple[TimeSeriesClient, _FakeStore]:
    store = _FakeStore()
    config = replace(StslConfig(database="cells"), **overrides)
    return TimeSeriesClient(config, store=store, clock=_Clock()), store


def test_create_database_parses_retention_and_caches_bucket() -> None:
    """Creating should pass seconds to the store and cache the policy."""
    client, store = _client()

    bucket = client.create_database("4w2d")

    assert bucket.retention_seconds == 4 * 604800 + 2 * 86400 and client.retention_seconds == (
        bucket.retention_seconds
    )


def test_create_database_adopts_existing_bucket() -> None:
    """An existing bucket should be adopted with its own retention."""
    client, store = _client()
    store.connection.buckets["cells"] = Bucket("cells", 3600, _START)

    bucket = client.create_database("1w")

    assert bucket.retention_seconds == 3600 and client.created_at == _START


def test_create_database_rejects_bad_unit_before_connecting() -> None:
    """Malformed retention text should fail without a store call."""
    client, store = _client()

    with pytest.raises(InvalidUnitError):
        client.create_database("3x")

    assert store.connection.buckets == {}


def test_delete_database_forgets_cached_policy() -> None:
    """Deleting should clear the cached bucket."""
    client, store = _client()
    client.create_database("")

    client.delete_database()

    assert client.retention_seconds is None and client.database_name == "cells"


def test_delete_database_forwards_store_errors() -> None:
    """Store failures should reach the caller unchanged."""
    client, _ = _client()

    with pytest.raises(StoreError):
        client.delete_database()

    assert client.created_at is None


def test_update_retention_policy_pushes_shard_group_tier() -> None:
    """Updating should send the derived shard group duration."""
    client, store = _client()
    client.create_database("")

    client.update_retention_policy("1h")

    assert store.connection.retention_updates == [("cells", 3600, 3600)] and (
        client.retention_seconds == 3600
    )


def test_update_retention_policy_infinite_uses_week_shards() -> None:
    """Empty retention should map onto the one-week shard tier."""
    client, store = _client()

    client.update_retention_policy("")

    assert store.connection.retention_updates == [("cells", 0, 604800)]


def test_drop_measurement_deletes_since_creation() -> None:
    """Dropping should delete from bucket creation up to now."""
    client, store = _client()
    client.create_database("")

    client.drop_measurement("rf")
    measurement, start, stop = store.connection.deletes[0]

    assert (measurement, start) == ("rf", _START) and stop > start


def test_drop_measurement_without_bucket_starts_at_epoch() -> None:
    """An unknown creation time should fall back to the epoch."""
    client, store = _client()

    client.drop_measurement("rf")

    assert store.connection.deletes[0][1] == EPOCH


def test_set_writes_single_field_point() -> None:
    """Setting a value should write one untagged point."""
    client, store = _client()

    client.set("rf", "rsp", -90)

    assert [point[:3] for point in store.connection.points] == [("rf", {}, {"rsp": -90})]


def test_get_returns_newest_value() -> None:
    """The row with the greatest time should win."""
    client, store = _client()
    store.connection.rows = [
        {"_time": _START + timedelta(seconds=5), "_value": "new"},
        {"_time": _START, "_value": "old"},
    ]

    value = client.get("rf", "rsp")

    assert value == "new" and 'r._field == "rsp"' in store.connection.queries[0]


def test_get_returns_none_without_rows() -> None:
    """A missing field should yield no value."""
    client, _ = _client()

    value = client.get("rf", "rsp")

    assert value is None


def test_query_returns_cursor_rows() -> None:
    """Raw queries should pass rows through unchanged."""
    client, store = _client()
    store.connection.rows = [{"_value": 1}]

    rows = list(client.query("from(bucket: \"cells\")"))

    assert rows == [{"_value": 1}]


def test_write_point_rejects_empty_fields() -> None:
    """A point needs at least one field."""
    client, store = _client()

    with pytest.raises(InvalidInputError):
        client.write_point("rf", {}, {})

    assert store.connection.points == []


def test_write_point_rejects_null_field() -> None:
    """Null fields cannot be stored."""
    client, store = _client()

    with pytest.raises(InvalidInputError):
        client.write_point("rf", {}, {"a": None})  # type: ignore[dict-item]

    assert store.connection.points == []


def test_insert_json_flattens_nested_fixture() -> None:
    """A nested object should become one point with flattened fields."""
    client, store = _client()

    client.insert_json(
        "FlattenTable",
        ["floatdata", "key2"],
        fixture_path("json/nested_row.json").read_bytes(),
    )
    fields = store.connection.points[0][2]

    assert len(store.connection.points) == 1 and (
        fields["floatdata"],
        fields["nested_data.key2"],
        fields["nested_data.key3.1"],
    ) == ("[56.67,45.68,78.12]", "[45,56]", 45.78)


def test_insert_json_drops_unsupported_fields() -> None:
    """Unsupported kinds should be dropped without failing the call."""
    client, store = _client()

    client.insert_json("rf", [], b'{"rsp": -90, "note": null}')

    assert store.connection.points[0][2] == {"rsp": -90}


def test_insert_json_rejects_array_root() -> None:
    """Single inserts need an object root."""
    client, store = _client()

    with pytest.raises(InvalidInputError):
        client.insert_json("rf", [], b"[1]")

    assert store.connection.points == []


def test_insert_json_array_writes_one_point_per_row() -> None:
    """Each array element should become its own timestamped point."""
    clock = _Clock()
    store = _FakeStore()
    client = TimeSeriesClient(StslConfig(database="cells"), store=store, clock=clock)
    call_start = clock()

    written = client.insert_json_array(
        "FlattenJsonArrayTable",
        [],
        fixture_path("json/neighbor_cells.json").read_bytes(),
    )
    call_end = clock()

    timestamps = [point[3] for point in store.connection.points]
    assert written == 2 and all(call_start <= stamp <= call_end for stamp in timestamps)


def test_insert_json_array_keeps_rows_written_before_failure() -> None:
    """Without all-or-nothing earlier rows stay written."""
    client, store = _client()
    payload = b'[{"a": 1}, {"b": null}, {"a": 3}]'

    with pytest.raises(InvalidInputError):
        client.insert_json_array("rf", [], payload)

    assert [point[2] for point in store.connection.points] == [{"a": 1}]


def test_insert_rows_stops_at_unserializable_ignored_subtree() -> None:
    """An ignored subtree that cannot be serialized should stop the batch."""
    client, store = _client()
    rows = [{"a": 1}, {"bad": {"x": float("inf")}}, {"a": 3}]

    with pytest.raises(SerializationError):
        client.insert_rows("rf", rows, ["bad"])

    assert [point[2] for point in store.connection.points] == [{"a": 1}]


def test_insert_json_rejects_out_of_range_number() -> None:
    """Numbers that overflow a float should fail instead of being lost."""
    client, store = _client()

    with pytest.raises(InvalidInputError):
        client.insert_json("rf", [], b'{"a": 1e999}')

    assert store.connection.points == []


def test_write_point_rejects_non_finite_float() -> None:
    """Infinite and NaN fields cannot be stored."""
    client, store = _client()

    with pytest.raises(InvalidInputError):
        client.write_point("rf", {}, {"a": float("nan")})

    assert store.connection.points == []


def test_insert_json_array_all_or_nothing_writes_nothing_on_failure() -> None:
    """All-or-nothing mode should validate every row before writing."""
    client, store = _client()

    with pytest.raises(InvalidInputError):
        client.insert_json_array("rf", [], b'[{"a": 1}, {"b": null}]', all_or_nothing=True)

    assert store.connection.points == []


def test_insert_rows_accepts_plain_mappings() -> None:
    """Decoded Python mappings should be flattened like JSON rows."""
    client, store = _client(array_exemption="recursive")

    written = client.insert_rows("rf", [{"cells": [{"meta": {"id": 1}, "rsp": -90}]}], ["meta"])

    assert written == 1 and store.connection.points[0][2] == {
        "cells.0.meta": '{"id":1}',
        "cells.0.rsp": -90,
    }


def test_store_write_errors_propagate() -> None:
    """Store failures on write should reach the caller."""
    client, store = _client()
    store.connection.fail_writes = True

    with pytest.raises(StoreError):
        client.set("rf", "rsp", 1)

    assert store.connection.points == []


def test_flush_and_close_release_connection() -> None:
    """Closing should flush through the store and drop the connection."""
    client, store = _client()

    with client:
        client.set("rf", "rsp", 1)
        client.flush()

    assert store.connection.flushes == 1 and store.connection.closed is True


def test_connection_is_opened_once() -> None:
    """Operations should share one lazily opened connection."""
    client, store = _client()

    client.set("rf", "a", 1)
    client.set("rf", "b", 2)

    assert store.connects == 1
