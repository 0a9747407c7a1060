"""stsl CLI entry points.
This module exposes database lifecycle, JSON ingest, and query commands.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys
from typing import Any, Sequence

from core.config import StslConfig
from core.constants import SUPPORTED_ARRAY_EXEMPTIONS, SUPPORTED_LOG_LEVELS
from core.duration import format_duration, parse_duration
from core.errors import InvalidInputError, StslError
from core.json_tree import to_python
from core.types import FieldValue
from ingest.flatten import flatten
from ingest.json_reader import decode_json
from store.timeseries_sdk import TimeSeriesClient

_OFFLINE_COMMANDS = ("flatten", "duration")


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="stsl", description="Time-series JSON storage CLI")
    parser.add_argument("--config", help="YAML config file layered over the environment")
    parser.add_argument("--database", help="Override TIMESERIESDB_DATABASE for this command")
    parser.add_argument(
        "--log-level",
        choices=SUPPORTED_LOG_LEVELS,
        help="Override STSL_LOG_LEVEL for this command",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_database_commands(subparsers)
    _add_point_commands(subparsers)
    _add_ingest_commands(subparsers)
    _add_offline_commands(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the stsl CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command in _OFFLINE_COMMANDS:
            return _run_offline_command(args)
        with _build_client(args) as client:
            return _run_client_command(client, args)
    except StslError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1


def _build_client(args: argparse.Namespace) -> TimeSeriesClient:
    """Build SDK client from config file, environment and flags.

    Args:
        args: Parsed CLI args.

    Returns:
        Configured SDK client.
    """
    return TimeSeriesClient(_resolve_config(args))


def _resolve_config(args: argparse.Namespace) -> StslConfig:
    config = StslConfig.from_yaml(args.config) if args.config else StslConfig.from_env()
    overrides: dict[str, Any] = {}
    if args.database:
        overrides["database"] = args.database
    if args.log_level:
        overrides["log_level"] = args.log_level
    return config.with_overrides(overrides) if overrides else config


def _run_client_command(client: TimeSeriesClient, args: argparse.Namespace) -> int:
    """Dispatch commands that need a database connection.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    if args.command == "create-db":
        bucket = client.create_database(args.retention)
        print(f"{bucket.name}\t{format_duration(bucket.retention_seconds) or 'infinite'}")
    elif args.command == "delete-db":
        client.delete_database()
    elif args.command == "update-retention":
        client.update_retention_policy(args.retention)
    elif args.command == "drop-measurement":
        client.drop_measurement(args.measurement)
    elif args.command == "set":
        client.set(args.measurement, args.key, _parse_field_value(args.value))
    elif args.command == "get":
        print(json.dumps(client.get(args.measurement, args.key), default=str))
    elif args.command == "query":
        for row in client.query(args.text):
            print(json.dumps(dict(row), default=str, sort_keys=True))
    elif args.command == "insert-json":
        client.insert_json(args.measurement, args.ignore_key, _read_source(args.source))
    elif args.command == "insert-json-array":
        written = client.insert_json_array(
            args.measurement,
            args.ignore_key,
            _read_source(args.source),
            all_or_nothing=args.all_or_nothing,
        )
        print(written)
    return 0


def _run_offline_command(args: argparse.Namespace) -> int:
    """Handle commands that never touch the database."""
    if args.command == "flatten":
        flat_row = flatten(
            decode_json(_read_source(args.source)),
            args.prefix,
            args.ignore_key,
            args.array_exemption,
        )
        payload = {key: to_python(node) for key, node in flat_row.items()}
        print(json.dumps(payload, sort_keys=True, indent=2))
        return 0
    value = args.value
    if value.isdigit():
        print(format_duration(int(value)))
    else:
        print(parse_duration(value))
    return 0


def _read_source(source: str) -> bytes:
    """Read a JSON payload from a file path, or stdin for ``-``.

    Raises:
        InvalidInputError: If the file cannot be read.
    """
    if source == "-":
        return sys.stdin.buffer.read()
    source_path = Path(source).expanduser()
    try:
        return source_path.read_bytes()
    except OSError as error:
        raise InvalidInputError(
            f"Failed to read JSON payload at {source_path}: {error}. "
            "Provide an existing file or '-' for stdin."
        ) from error


def _parse_field_value(raw_value: str) -> FieldValue:
    """Read a CLI value as a JSON scalar, falling back to the raw string."""
    try:
        parsed = json.loads(raw_value)
    except json.JSONDecodeError:
        return raw_value
    if isinstance(parsed, (bool, int, float, str)):
        return parsed
    return raw_value


def _add_database_commands(subparsers: Any) -> None:
    """Register database lifecycle subcommands."""
    parser = subparsers.add_parser("create-db", help="Create or adopt the database")
    parser.add_argument(
        "--retention",
        default="",
        help="Retention such as 4w2d; empty for infinite",
    )
    subparsers.add_parser("delete-db", help="Delete the database")
    parser = subparsers.add_parser("update-retention", help="Change the database retention")
    parser.add_argument("retention", help="Retention such as 12h; empty for infinite")
    parser = subparsers.add_parser(
        "drop-measurement",
        help="Delete all points of a measurement",
    )
    parser.add_argument("measurement", help="Measurement name")


def _add_point_commands(subparsers: Any) -> None:
    """Register point read/write subcommands."""
    parser = subparsers.add_parser("set", help="Write one field as a new point")
    parser.add_argument("measurement", help="Measurement name")
    parser.add_argument("key", help="Field key")
    parser.add_argument("value", help="Field value; JSON scalars keep their type")
    parser = subparsers.add_parser("get", help="Read the newest value of a field")
    parser.add_argument("measurement", help="Measurement name")
    parser.add_argument("key", help="Field key")
    parser = subparsers.add_parser("query", help="Run a raw query and print rows as JSON")
    parser.add_argument("text", help="Query text")


def _add_ingest_commands(subparsers: Any) -> None:
    """Register JSON ingest subcommands."""
    parser = subparsers.add_parser("insert-json", help="Insert one JSON object as a point")
    _add_json_source_arguments(parser)
    parser = subparsers.add_parser(
        "insert-json-array",
        help="Insert each object of a JSON array as a point",
    )
    _add_json_source_arguments(parser)
    parser.add_argument(
        "--all-or-nothing",
        action="store_true",
        help="Validate every row before writing any",
    )


def _add_json_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("measurement", help="Measurement name")
    parser.add_argument("source", help="JSON file path, or - for stdin")
    parser.add_argument(
        "--ignore-key",
        action="append",
        default=[],
        help="Key whose subtree is stored as JSON text; repeatable",
    )


def _add_offline_commands(subparsers: Any) -> None:
    """Register subcommands that run without a database."""
    parser = subparsers.add_parser("flatten", help="Print the flattened form of a JSON file")
    parser.add_argument("source", help="JSON file path, or - for stdin")
    parser.add_argument("--prefix", default="", help="Prefix for top-level keys")
    parser.add_argument(
        "--ignore-key",
        action="append",
        default=[],
        help="Key whose subtree is kept as JSON text; repeatable",
    )
    parser.add_argument(
        "--array-exemption",
        default="legacy",
        choices=SUPPORTED_ARRAY_EXEMPTIONS,
        help="Handling of ignored keys inside array elements",
    )
    parser = subparsers.add_parser(
        "duration",
        help="Convert duration text to seconds, or seconds to duration text",
    )
    parser.add_argument("value", help="Duration such as 3w4d, or a number of seconds")
