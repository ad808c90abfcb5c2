"""Configuration management for cnabproc."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from cnabproc.domain.errors import ConfigurationError

ENV_PREFIX = "CNABPROC_"

DEFAULT_HOME = Path.home() / ".cnabproc"
DEFAULT_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

LOG_FORMATS = ("standard", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env(name: str) -> Optional[str]:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got '{value}'") from e


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got '{value}'") from e


@dataclass
class ProcessorConfig:
    """Settings for the upload, worker and query commands."""

    database_path: Optional[str] = None
    blob_dir: Path = field(default_factory=lambda: DEFAULT_HOME / "blobs")
    dead_letter_path: Path = field(default_factory=lambda: DEFAULT_HOME / "dead-letters.jsonl")
    max_attempts: int = 3
    visibility_timeout_seconds: int = 300
    processing_timeout_seconds: int = 240
    poll_interval_seconds: float = 5.0
    retry_delay_seconds: int = 30
    workers: int = 4
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    notification_recipient: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = "standard"

    def __post_init__(self) -> None:
        self.blob_dir = Path(self.blob_dir)
        self.dead_letter_path = Path(self.dead_letter_path)
        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigurationError: If any setting is out of range
        """
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.visibility_timeout_seconds < 1:
            raise ConfigurationError("visibility_timeout_seconds must be at least 1")
        if self.processing_timeout_seconds < 1:
            raise ConfigurationError("processing_timeout_seconds must be at least 1")
        if self.processing_timeout_seconds > self.visibility_timeout_seconds:
            raise ConfigurationError(
                "processing_timeout_seconds must not exceed visibility_timeout_seconds"
            )
        if self.poll_interval_seconds < 0:
            raise ConfigurationError("poll_interval_seconds must not be negative")
        if self.retry_delay_seconds < 0:
            raise ConfigurationError("retry_delay_seconds must not be negative")
        if self.workers < 1:
            raise ConfigurationError("workers must be at least 1")
        if self.max_file_size_bytes < 1:
            raise ConfigurationError("max_file_size_bytes must be at least 1")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{self.log_level}'"
            )
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(
                f"log_format must be one of {', '.join(LOG_FORMATS)}, got '{self.log_format}'"
            )

    @classmethod
    def from_env(cls) -> "ProcessorConfig":
        """Create config from CNABPROC_* environment variables."""
        home = Path(_env("HOME") or DEFAULT_HOME)
        return cls(
            database_path=_env("DB_PATH"),
            blob_dir=Path(_env("BLOB_DIR") or home / "blobs"),
            dead_letter_path=Path(_env("DEAD_LETTER_PATH") or home / "dead-letters.jsonl"),
            max_attempts=_env_int("MAX_ATTEMPTS", 3),
            visibility_timeout_seconds=_env_int("VISIBILITY_TIMEOUT", 300),
            processing_timeout_seconds=_env_int("PROCESSING_TIMEOUT", 240),
            poll_interval_seconds=_env_float("POLL_INTERVAL", 5.0),
            retry_delay_seconds=_env_int("RETRY_DELAY", 30),
            workers=_env_int("WORKERS", 4),
            max_file_size_bytes=_env_int("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE_BYTES),
            notification_recipient=_env("NOTIFICATION_RECIPIENT"),
            log_level=_env("LOG_LEVEL") or "INFO",
            log_format=_env("LOG_FORMAT") or "standard",
        )
