"""Unit tests for core config parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.config import StslConfig
from core.errors import StslConfigError
from tests.fixture_paths import fixture_path

_ENV_NAMES = (
    "TIMESERIESDB_SERVICE_HOST",
    "TIMESERIESDB_SERVICE_PORT_HTTP",
    "TIMESERIESDB_TOKEN",
    "TIMESERIESDB_ORG",
    "TIMESERIESDB_DATABASE",
    "STSL_LOG_LEVEL",
    "STSL_BATCH_WRITES",
    "STSL_BATCH_SIZE",
    "STSL_FLUSH_INTERVAL_MS",
    "STSL_WRITE_ERROR_QUEUE_SIZE",
    "STSL_ARRAY_EXEMPTION",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_from_env_uses_defaults() -> None:
    """Config should fall back to local defaults without environment."""
    config = StslConfig.from_env()

    assert config.url == "http://localhost:8086" and config.database == "default"


def test_from_env_reads_service_location(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should resolve host, port and database from environment."""
    monkeypatch.setenv("TIMESERIESDB_SERVICE_HOST", "tsdb")
    monkeypatch.setenv("TIMESERIESDB_SERVICE_PORT_HTTP", "8087")
    monkeypatch.setenv("TIMESERIESDB_DATABASE", "cells")

    config = StslConfig.from_env()

    assert (config.url, config.database) == ("http://tsdb:8087", "cells")


def test_from_env_raises_for_invalid_port(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for a non-numeric port."""
    monkeypatch.setenv("TIMESERIESDB_SERVICE_PORT_HTTP", "not-a-number")

    with pytest.raises(StslConfigError) as error_info:
        StslConfig.from_env()

    assert "TIMESERIESDB_SERVICE_PORT_HTTP" in str(error_info.value)


def test_from_env_raises_for_unknown_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should reject unsupported log levels."""
    monkeypatch.setenv("STSL_LOG_LEVEL", "chatty")

    with pytest.raises(StslConfigError):
        StslConfig.from_env()

    assert StslConfig().log_level == "info"


def test_from_env_parses_batch_switch(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should read boolean switches in common spellings."""
    monkeypatch.setenv("STSL_BATCH_WRITES", "off")

    config = StslConfig.from_env()

    assert config.batch_writes is False


def test_from_env_raises_for_unknown_array_exemption(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should reject unknown flatten compatibility modes."""
    monkeypatch.setenv("STSL_ARRAY_EXEMPTION", "strict")

    with pytest.raises(StslConfigError):
        StslConfig.from_env()

    assert StslConfig().array_exemption == "legacy"


def test_from_yaml_layers_file_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """YAML values should override environment values field by field."""
    monkeypatch.setenv("TIMESERIESDB_ORG", "acme")

    config = StslConfig.from_yaml(fixture_path("config/stsl.yaml"))

    assert (config.org, config.url, config.database, config.batch_writes) == (
        "acme",
        "http://tsdb.internal:9999",
        "telemetry",
        False,
    )


def test_from_yaml_rejects_unknown_keys(tmp_path: Path) -> None:
    """Config files should not silently ignore misspelled keys."""
    config_path = tmp_path / "stsl.yaml"
    config_path.write_text("databse: oops\n", encoding="utf-8")

    with pytest.raises(StslConfigError) as error_info:
        StslConfig.from_yaml(config_path)

    assert "databse" in str(error_info.value)


def test_from_yaml_raises_for_missing_file(tmp_path: Path) -> None:
    """Config should fail clearly when the file does not exist."""
    missing_path = tmp_path / "missing.yaml"

    with pytest.raises(StslConfigError):
        StslConfig.from_yaml(missing_path)

    assert missing_path.exists() is False


def test_from_yaml_accepts_empty_file(tmp_path: Path) -> None:
    """An empty config file should keep environment values."""
    config_path = tmp_path / "empty.yaml"
    config_path.write_text("", encoding="utf-8")

    config = StslConfig.from_yaml(config_path)

    assert config == StslConfig.from_env()


def test_with_overrides_rejects_empty_database() -> None:
    """The database name is required."""
    with pytest.raises(StslConfigError):
        StslConfig().with_overrides({"database": ""})

    assert StslConfig().database == "default"
