"""Dead-letter sinks for work items that will not be retried."""

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from dateutil import parser as date_parser

from cnabproc.domain.errors import StorageError
from cnabproc.logging_config import get_logger

logger = get_logger(__name__)


class DeadLetterCode(str, Enum):
    """Why a work item was dead-lettered."""

    RETRIES_EXHAUSTED = "RetriesExhausted"
    MALFORMED_MESSAGE = "MalformedMessage"
    FILE_NOT_FOUND = "FileNotFound"
    CONTRACT_VIOLATION = "ContractViolation"


def _timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class DeadLetterEntry:
    """Work item parked for manual inspection."""

    file_id: Optional[str]
    blob_key: Optional[str]
    code: DeadLetterCode
    message: str
    attempts: int
    received_at: datetime
    moved_at: datetime
    message_id: Optional[str] = None
    body: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "fileId": self.file_id,
            "blobKey": self.blob_key,
            "error": {
                "code": self.code.value,
                "message": self.message,
                "attempts": self.attempts,
            },
            "receivedAt": _timestamp(self.received_at),
            "movedAt": _timestamp(self.moved_at),
        }
        if self.message_id is not None:
            data["messageId"] = self.message_id
        if self.body is not None:
            data["body"] = self.body
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeadLetterEntry":
        error = data["error"]
        return cls(
            file_id=data.get("fileId"),
            blob_key=data.get("blobKey"),
            code=DeadLetterCode(error["code"]),
            message=error["message"],
            attempts=error["attempts"],
            received_at=date_parser.isoparse(data["receivedAt"]),
            moved_at=date_parser.isoparse(data["movedAt"]),
            message_id=data.get("messageId"),
            body=data.get("body"),
        )


class DeadLetterSink(ABC):
    """Terminal destination for work items that exceeded their retry budget."""

    @abstractmethod
    def send(self, entry: DeadLetterEntry) -> None:
        """Park an entry.

        Raises:
            StorageError: If the entry could not be written
        """
        pass

    @abstractmethod
    def entries(self) -> list[DeadLetterEntry]:
        """Return every parked entry, oldest first."""
        pass

    def contains(self, file_id: str, code: DeadLetterCode) -> bool:
        """Whether an entry with ``code`` was already parked for ``file_id``."""
        return any(e.file_id == file_id and e.code is code for e in self.entries())


class JsonLinesDeadLetterSink(DeadLetterSink):
    """Append dead-letter entries to a JSON Lines file."""

    def __init__(self, path: str | Path):
        """Initialize JSON Lines sink.

        Args:
            path: File to append to. Parent directories are created.
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def send(self, entry: DeadLetterEntry) -> None:
        line = json.dumps(entry.to_dict(), ensure_ascii=False, default=str)
        try:
            with self._lock, open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            raise StorageError(f"Failed to write dead-letter entry to {self.path}: {e}") from e
        logger.error(
            "Dead-lettered file %s: %s (%s)", entry.file_id, entry.code.value, entry.message
        )

    def entries(self) -> list[DeadLetterEntry]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                return [DeadLetterEntry.from_dict(json.loads(line)) for line in f if line.strip()]
        except OSError as e:
            raise StorageError(f"Failed to read dead-letter entries from {self.path}: {e}") from e


class MemoryDeadLetterSink(DeadLetterSink):
    """Keep dead-letter entries in memory."""

    def __init__(self) -> None:
        self._entries: list[DeadLetterEntry] = []
        self._lock = threading.Lock()

    def send(self, entry: DeadLetterEntry) -> None:
        with self._lock:
            self._entries.append(entry)
        logger.error(
            "Dead-lettered file %s: %s (%s)", entry.file_id, entry.code.value, entry.message
        )

    def entries(self) -> list[DeadLetterEntry]:
        with self._lock:
            return list(self._entries)
