"""Runtime configuration model for stsl.

This module owns all environment variable and config file parsing.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from core.constants import (
    DEFAULT_ARRAY_EXEMPTION,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DATABASE,
    DEFAULT_FLUSH_INTERVAL_MS,
    DEFAULT_HOST,
    DEFAULT_LOG_LEVEL,
    DEFAULT_ORG,
    DEFAULT_PORT,
    DEFAULT_WRITE_ERROR_QUEUE_SIZE,
    SUPPORTED_ARRAY_EXEMPTIONS,
    SUPPORTED_LOG_LEVELS,
)
from core.errors import StslConfigError

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class StslConfig:
    """Validated runtime configuration.

    Attributes:
        host: Time-series database host name.
        port: Time-series database HTTP port.
        token: API token used for authentication.
        org: Organization owning the database.
        database: Logical database (bucket) name bound to the client.
        log_level: Minimum log level for client events.
        batch_writes: Whether point writes are buffered and flushed in batches.
        batch_size: Points per batch when batching is enabled.
        flush_interval_ms: Maximum buffering time before a batch is sent.
        write_error_queue_size: Capacity of the asynchronous write-error queue.
        array_exemption: Flatten compatibility mode for ignored keys in arrays.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    token: str = ""
    org: str = DEFAULT_ORG
    database: str = DEFAULT_DATABASE
    log_level: str = DEFAULT_LOG_LEVEL
    batch_writes: bool = True
    batch_size: int = DEFAULT_BATCH_SIZE
    flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS
    write_error_queue_size: int = DEFAULT_WRITE_ERROR_QUEUE_SIZE
    array_exemption: str = DEFAULT_ARRAY_EXEMPTION

    @property
    def url(self) -> str:
        """Return the HTTP base URL of the database service."""
        return f"http://{self.host}:{self.port}"

    @classmethod
    def from_env(cls) -> "StslConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            StslConfigError: If environment values are invalid.
        """
        config = cls(
            host=os.getenv("TIMESERIESDB_SERVICE_HOST") or DEFAULT_HOST,
            port=_parse_positive_int(
                "TIMESERIESDB_SERVICE_PORT_HTTP",
                os.getenv("TIMESERIESDB_SERVICE_PORT_HTTP") or str(DEFAULT_PORT),
            ),
            token=os.getenv("TIMESERIESDB_TOKEN", ""),
            org=os.getenv("TIMESERIESDB_ORG") or DEFAULT_ORG,
            database=os.getenv("TIMESERIESDB_DATABASE") or DEFAULT_DATABASE,
            log_level=os.getenv("STSL_LOG_LEVEL", DEFAULT_LOG_LEVEL),
            batch_writes=_parse_bool("STSL_BATCH_WRITES", os.getenv("STSL_BATCH_WRITES", "true")),
            batch_size=_parse_positive_int(
                "STSL_BATCH_SIZE", os.getenv("STSL_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))
            ),
            flush_interval_ms=_parse_positive_int(
                "STSL_FLUSH_INTERVAL_MS",
                os.getenv("STSL_FLUSH_INTERVAL_MS", str(DEFAULT_FLUSH_INTERVAL_MS)),
            ),
            write_error_queue_size=_parse_positive_int(
                "STSL_WRITE_ERROR_QUEUE_SIZE",
                os.getenv("STSL_WRITE_ERROR_QUEUE_SIZE", str(DEFAULT_WRITE_ERROR_QUEUE_SIZE)),
            ),
            array_exemption=os.getenv("STSL_ARRAY_EXEMPTION", DEFAULT_ARRAY_EXEMPTION),
        )
        return config.validated()

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "StslConfig":
        """Build config from a YAML file layered over the environment.

        Args:
            config_path: Path to a YAML mapping using config field names.

        Returns:
            A validated config object.

        Raises:
            StslConfigError: If the file is unreadable or holds invalid values.
        """
        payload = _load_yaml_mapping(Path(config_path).expanduser())
        return cls.from_env().with_overrides(payload)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "StslConfig":
        """Return a validated copy with selected fields replaced.

        Args:
            overrides: Mapping of field name to raw value.

        Returns:
            Updated config object.

        Raises:
            StslConfigError: For unknown fields or invalid values.
        """
        known_fields = {item.name: item for item in fields(self)}
        unknown = sorted(set(overrides) - set(known_fields))
        if unknown:
            raise StslConfigError(
                f"Unknown config keys: {', '.join(unknown)}. "
                f"Supported keys: {', '.join(sorted(known_fields))}."
            )
        coerced = {name: _coerce_field(name, value) for name, value in overrides.items()}
        return replace(self, **coerced).validated()

    def validated(self) -> "StslConfig":
        """Check cross-field constraints and return self.

        Raises:
            StslConfigError: If a field holds an unsupported value.
        """
        if self.log_level.lower() not in SUPPORTED_LOG_LEVELS:
            raise StslConfigError(
                f"Invalid log level '{self.log_level}': "
                f"expected one of {', '.join(SUPPORTED_LOG_LEVELS)}."
            )
        if self.array_exemption not in SUPPORTED_ARRAY_EXEMPTIONS:
            raise StslConfigError(
                f"Invalid array exemption mode '{self.array_exemption}': "
                f"expected one of {', '.join(SUPPORTED_ARRAY_EXEMPTIONS)}."
            )
        if not self.database:
            raise StslConfigError("Database name must not be empty. Set TIMESERIESDB_DATABASE.")
        return self


def _coerce_field(name: str, value: Any) -> Any:
    """Coerce a raw YAML or CLI value onto the field's type."""
    if name in ("port", "batch_size", "flush_interval_ms", "write_error_queue_size"):
        return _parse_positive_int(name, str(value))
    if name == "batch_writes":
        if isinstance(value, bool):
            return value
        return _parse_bool(name, str(value))
    if value is None:
        raise StslConfigError(f"Config key '{name}' must not be null.")
    return str(value)


def _parse_positive_int(name: str, raw_value: str) -> int:
    """Parse a positive integer setting.

    Args:
        name: Setting name for error context.
        raw_value: Raw string value.

    Returns:
        Parsed integer.

    Raises:
        StslConfigError: If value is not a positive integer.
    """
    try:
        parsed = int(raw_value)
    except ValueError as error:
        raise StslConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a numeric value."
        ) from error
    if parsed <= 0:
        raise StslConfigError(f"Invalid {name} value: expected a positive integer, got {parsed}.")
    return parsed


def _parse_bool(name: str, raw_value: str) -> bool:
    lowered = raw_value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise StslConfigError(
        f"Invalid {name} value: expected true/false, got '{raw_value}'."
    )


def _load_yaml_mapping(config_path: Path) -> dict[str, Any]:
    """Read a YAML file that must hold a top-level mapping.

    Args:
        config_path: YAML file path.

    Returns:
        Parsed mapping.

    Raises:
        StslConfigError: If file is missing, malformed, or not a mapping.
    """
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as error:
        raise StslConfigError(
            f"Failed to read config file {config_path}: {error}. "
            "Provide an existing YAML file."
        ) from error
    try:
        payload = yaml.safe_load(raw_text)
    except yaml.YAMLError as error:
        raise StslConfigError(f"Failed to parse config file {config_path}: {error}.") from error
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise StslConfigError(
            f"Invalid config file {config_path}: expected a mapping at top level."
        )
    return {str(key): value for key, value in payload.items()}
