"""Structured logging configuration for cnabproc."""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, UTC
from typing import Any

LOGGER_NAMESPACE = "cnabproc"


class LogContext:
    """Context-local fields attached to every JSON log record.

    Workers bind the file, message and invocation being handled so that log
    lines from one delivery can be correlated.
    """

    _correlation_id: ContextVar[str | None] = ContextVar("log_correlation_id", default=None)
    _file_id: ContextVar[str | None] = ContextVar("log_file_id", default=None)
    _message_id: ContextVar[str | None] = ContextVar("log_message_id", default=None)
    _invocation_id: ContextVar[str | None] = ContextVar("log_invocation_id", default=None)

    _FIELD_NAMES = ("correlation_id", "file_id", "message_id", "invocation_id")

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Return all non-None context fields as a dict."""
        fields: dict[str, str] = {}
        for name in cls._FIELD_NAMES:
            value = getattr(cls, f"_{name}").get()
            if value is not None:
                fields[name] = value
        return fields

    @classmethod
    def clear(cls) -> None:
        """Reset all context fields to None."""
        for name in cls._FIELD_NAMES:
            getattr(cls, f"_{name}").set(None)

    @classmethod
    def bind(cls, **fields: str | None) -> "_BoundContext":
        """Context manager that sets fields on entry and restores them on exit."""
        unknown = set(fields) - set(cls._FIELD_NAMES)
        if unknown:
            raise ValueError(f"Unknown log context fields: {', '.join(sorted(unknown))}")
        return _BoundContext(fields)


class _BoundContext:
    def __init__(self, fields: dict[str, str | None]):
        self._fields = fields
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            if value is not None:
                self._tokens[name] = getattr(LogContext, f"_{name}").set(value)
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for name, token in self._tokens.items():
            getattr(LogContext, f"_{name}").reset(token)
        self._tokens.clear()


_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(LogContext.get_all())

        # Fields passed through ``extra=``
        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", format_type: str = "standard") -> None:
    """Configure logging for cnabproc.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "standard" or "json"
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger(LOGGER_NAMESPACE).setLevel(log_level)

    # Reduce noise from external libraries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the cnabproc namespace.

    Args:
        name: Logger name (usually __name__)
    """
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
