"""Tests for dead-letter sinks."""

import json
from datetime import datetime, UTC

import pytest

from cnabproc.domain.errors import StorageError
from cnabproc.messaging.dead_letter import (
    DeadLetterCode,
    DeadLetterEntry,
    JsonLinesDeadLetterSink,
    MemoryDeadLetterSink,
)


def _entry(**overrides):
    values = dict(
        file_id="f-1",
        blob_key="uploads/f-1/CNAB.txt",
        code=DeadLetterCode.RETRIES_EXHAUSTED,
        message="System error: processing failed after 3 attempts",
        attempts=3,
        received_at=datetime(2024, 3, 1, 12, 0, tzinfo=UTC),
        moved_at=datetime(2024, 3, 1, 12, 0, 5, tzinfo=UTC),
    )
    values.update(overrides)
    return DeadLetterEntry(**values)


def test_entry_shape():
    """Test the serialized entry layout."""
    assert _entry().to_dict() == {
        "fileId": "f-1",
        "blobKey": "uploads/f-1/CNAB.txt",
        "error": {
            "code": "RetriesExhausted",
            "message": "System error: processing failed after 3 attempts",
            "attempts": 3,
        },
        "receivedAt": "2024-03-01T12:00:00Z",
        "movedAt": "2024-03-01T12:00:05Z",
    }


def test_optional_fields_included_when_set():
    data = _entry(message_id="m-1", body="garbage", file_id=None, blob_key=None).to_dict()

    assert data["messageId"] == "m-1"
    assert data["body"] == "garbage"
    assert data["fileId"] is None


def test_json_lines_sink_appends(tmp_path):
    """Test each entry is one JSON line and can be read back."""
    path = tmp_path / "dlq" / "dead-letters.jsonl"
    sink = JsonLinesDeadLetterSink(path)

    sink.send(_entry())
    sink.send(_entry(code=DeadLetterCode.MALFORMED_MESSAGE, body="{"))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[1])["error"]["code"] == "MalformedMessage"

    entries = sink.entries()
    assert entries[0] == _entry()
    assert entries[1].code is DeadLetterCode.MALFORMED_MESSAGE


def test_json_lines_sink_empty(tmp_path):
    assert JsonLinesDeadLetterSink(tmp_path / "none.jsonl").entries() == []


def test_json_lines_sink_write_failure(tmp_path):
    """Test an unwritable sink raises StorageError."""
    path = tmp_path / "dead-letters.jsonl"
    path.mkdir()
    sink = JsonLinesDeadLetterSink(path)

    with pytest.raises(StorageError):
        sink.send(_entry())


def test_memory_sink():
    sink = MemoryDeadLetterSink()
    sink.send(_entry())

    assert sink.entries() == [_entry()]


@pytest.mark.parametrize("make_sink", [lambda p: JsonLinesDeadLetterSink(p / "dl.jsonl"), lambda p: MemoryDeadLetterSink()])
def test_contains_matches_file_and_code(tmp_path, make_sink):
    """Test lookup of an already parked entry by file and reason."""
    sink = make_sink(tmp_path)
    assert not sink.contains("f-1", DeadLetterCode.RETRIES_EXHAUSTED)

    sink.send(_entry())

    assert sink.contains("f-1", DeadLetterCode.RETRIES_EXHAUSTED)
    assert not sink.contains("f-1", DeadLetterCode.FILE_NOT_FOUND)
    assert not sink.contains("f-2", DeadLetterCode.RETRIES_EXHAUSTED)
