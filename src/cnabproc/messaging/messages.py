"""Work item message codec.

Work items travel as JSON objects with camelCase keys::

    {"fileId": "...", "blobKey": "...", "fileName": "...", "uploadedAt": "<RFC3339>"}
"""

import json
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any

from dateutil import parser as date_parser

from cnabproc.domain.entities import File
from cnabproc.domain.errors import ValidationError


class MalformedMessageError(ValidationError):
    """Message body is not a valid work item."""


_REQUIRED_KEYS = ("fileId", "blobKey", "fileName", "uploadedAt")


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _parse_timestamp(text: str) -> datetime:
    try:
        value = date_parser.isoparse(text)
    except (ValueError, OverflowError) as e:
        raise MalformedMessageError(f"Invalid uploadedAt '{text}': {e}") from e
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class WorkItem:
    """Request to process one uploaded file."""

    file_id: str
    blob_key: str
    file_name: str
    uploaded_at: datetime

    @classmethod
    def for_file(cls, file: File) -> "WorkItem":
        """Build the work item announcing ``file``."""
        return cls(
            file_id=file.id,
            blob_key=file.blob_key,
            file_name=file.name,
            uploaded_at=file.uploaded_at,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "fileId": self.file_id,
            "blobKey": self.blob_key,
            "fileName": self.file_name,
            "uploadedAt": _format_timestamp(self.uploaded_at),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "WorkItem":
        """Build a work item from decoded JSON.

        Raises:
            MalformedMessageError: If a key is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise MalformedMessageError("Work item must be a JSON object")
        missing = [key for key in _REQUIRED_KEYS if key not in data]
        if missing:
            raise MalformedMessageError(f"Work item is missing {', '.join(missing)}")
        for key in _REQUIRED_KEYS:
            value = data[key]
            if not isinstance(value, str) or not value.strip():
                raise MalformedMessageError(f"Work item field {key} must be a non-empty string")
        return cls(
            file_id=data["fileId"],
            blob_key=data["blobKey"],
            file_name=data["fileName"],
            uploaded_at=_parse_timestamp(data["uploadedAt"]),
        )

    @classmethod
    def from_json(cls, body: str) -> "WorkItem":
        """Decode a message body.

        Raises:
            MalformedMessageError: If the body is not a valid work item
        """
        try:
            data = json.loads(body)
        except (TypeError, ValueError) as e:
            raise MalformedMessageError(f"Message body is not valid JSON: {e}") from e
        return cls.from_dict(data)
