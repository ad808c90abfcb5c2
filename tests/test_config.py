"""Tests for configuration loading."""

import os
from pathlib import Path

import pytest

from cnabproc.config import ProcessorConfig
from cnabproc.domain.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("CNABPROC_"):
            monkeypatch.delenv(name)


def test_defaults():
    config = ProcessorConfig()

    assert config.max_attempts == 3
    assert config.visibility_timeout_seconds == 300
    assert config.processing_timeout_seconds == 240
    assert config.max_file_size_bytes == 10 * 1024 * 1024
    assert config.log_format == "standard"


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CNABPROC_HOME", str(tmp_path))
    monkeypatch.setenv("CNABPROC_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("CNABPROC_WORKERS", "8")
    monkeypatch.setenv("CNABPROC_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("CNABPROC_NOTIFICATION_RECIPIENT", "ops@example.com")
    monkeypatch.setenv("CNABPROC_LOG_FORMAT", "json")

    config = ProcessorConfig.from_env()

    assert config.blob_dir == tmp_path / "blobs"
    assert config.dead_letter_path == tmp_path / "dead-letters.jsonl"
    assert config.max_attempts == 5
    assert config.workers == 8
    assert config.poll_interval_seconds == 0.5
    assert config.notification_recipient == "ops@example.com"
    assert config.log_format == "json"


def test_explicit_paths_win_over_home(monkeypatch, tmp_path):
    monkeypatch.setenv("CNABPROC_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("CNABPROC_BLOB_DIR", str(tmp_path / "elsewhere"))

    assert ProcessorConfig.from_env().blob_dir == tmp_path / "elsewhere"


def test_blank_values_use_defaults(monkeypatch):
    monkeypatch.setenv("CNABPROC_MAX_ATTEMPTS", "  ")

    assert ProcessorConfig.from_env().max_attempts == 3


def test_paths_are_coerced():
    config = ProcessorConfig(blob_dir="blobs", dead_letter_path="dlq.jsonl")

    assert config.blob_dir == Path("blobs")
    assert isinstance(config.dead_letter_path, Path)


@pytest.mark.parametrize(
    "name,value",
    [("MAX_ATTEMPTS", "x"), ("POLL_INTERVAL", "soon"), ("WORKERS", "1.5")],
)
def test_malformed_numbers(monkeypatch, name, value):
    monkeypatch.setenv(f"CNABPROC_{name}", value)

    with pytest.raises(ConfigurationError, match=f"CNABPROC_{name}"):
        ProcessorConfig.from_env()


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_attempts": 0},
        {"workers": 0},
        {"retry_delay_seconds": -1},
        {"poll_interval_seconds": -1},
        {"processing_timeout_seconds": 301},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ],
)
def test_out_of_range(overrides):
    with pytest.raises(ConfigurationError):
        ProcessorConfig(**overrides)
