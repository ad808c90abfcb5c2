"""Shared pytest fixtures for cnabproc tests."""

import tempfile
import os
from datetime import datetime, UTC
from pathlib import Path
import pytest

from cnabproc.config import ProcessorConfig
from cnabproc.database.factories import create_sqlite_database
from cnabproc.domain.processing import FileProcessingService
from cnabproc.domain.upload import FileUploadService
from cnabproc.messaging.dead_letter import MemoryDeadLetterSink
from cnabproc.messaging.sql_queue import DatabaseQueue
from cnabproc.storage.local import LocalBlobStore
from cnabproc.utils.clock import ManualClock


def make_line(
    type_code="3",
    date="20190301",
    amount=14200,
    tax_id="09620676017",
    card="4753****3153",
    time="153453",
    owner="JOAO MACEDO",
    store="BAR DO JOAO",
) -> str:
    """Build one 80-column CNAB line."""
    amount_text = amount if isinstance(amount, str) else str(amount).zfill(10)
    line = f"{type_code}{date}{amount_text}{tax_id}{card}{time}{owner:<14}{store:<18}"
    assert len(line) == 80, f"test line has {len(line)} columns"
    return line


@pytest.fixture
def db_path():
    """Path of a temporary SQLite database file."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    yield path

    if os.path.exists(path):
        os.unlink(path)


@pytest.fixture
def temp_db(db_path):
    """Create a temporary database for testing."""
    db = create_sqlite_database(database_path=db_path)
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()


@pytest.fixture
def clock():
    """Manual clock starting at 2024-03-01 12:00 UTC."""
    return ManualClock(datetime(2024, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def blob_store(tmp_path):
    """Blob store in a temporary directory."""
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def dead_letters():
    """In-memory dead-letter sink."""
    return MemoryDeadLetterSink()


@pytest.fixture
def queue(temp_db, clock):
    """Work queue sharing the temporary database."""
    return DatabaseQueue(temp_db.session_factory, clock=clock)


@pytest.fixture
def upload_service(temp_db, blob_store, queue, clock):
    """Create a FileUploadService with temporary storage."""
    return FileUploadService(temp_db, blob_store, queue, clock)


@pytest.fixture
def processing_service(temp_db, blob_store, dead_letters, clock):
    """Create a FileProcessingService allowing three attempts."""
    return FileProcessingService(temp_db, blob_store, dead_letters, clock, max_attempts=3)


@pytest.fixture
def processor_config(tmp_path):
    """Processor config pointing at temporary paths."""
    return ProcessorConfig(
        blob_dir=tmp_path / "blobs",
        dead_letter_path=tmp_path / "dead-letters.jsonl",
        max_attempts=3,
        poll_interval_seconds=0,
        retry_delay_seconds=0,
        workers=2,
    )


@pytest.fixture
def cnab_line():
    """Factory for 80-column CNAB lines."""
    return make_line


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"
