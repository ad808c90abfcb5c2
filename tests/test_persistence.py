"""Tests for atomic persistence of validated files."""

from datetime import timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from cnabproc.database import sqlalchemy_db
from cnabproc.database.models import Store
from cnabproc.domain.cnab_file import scan_file
from cnabproc.domain.cnab_validator import RecordValidator
from cnabproc.domain.deadline import Deadline
from cnabproc.domain.entities import File, FileStatus
from cnabproc.domain.errors import DeadlineExceeded, InvalidTransition, ProcessingError, StaleStatusError
from cnabproc.domain.persistence import PersistenceOrchestrator
from cnabproc.utils.ids import uuid7


def _processing_file(db, clock, name="CNAB.txt") -> File:
    file_id = uuid7(clock.now())
    file = File(
        id=file_id,
        name=name,
        size=810,
        blob_key=f"uploads/{file_id}/{name}",
        status=FileStatus.PROCESSING,
        error_message=None,
        uploaded_at=clock.now(),
        processed_at=None,
    )
    db.create_file(file)
    return file


def _records(fixtures_dir):
    return scan_file((fixtures_dir / "CNAB.txt").read_bytes(), RecordValidator()).records


def _fail_after(monkeypatch, calls_before_failure, make_error):
    original = sqlalchemy_db._transaction_row
    calls = {"count": 0}

    def failing_row(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] > calls_before_failure:
            return make_error(original(*args, **kwargs))
        return original(*args, **kwargs)

    monkeypatch.setattr(sqlalchemy_db, "_transaction_row", failing_row)
    return calls


def test_commit_persists_everything(temp_db, clock, fixtures_dir):
    """Test stores, transactions and the Processed status land together."""
    file = _processing_file(temp_db, clock)
    orchestrator = PersistenceOrchestrator(temp_db, clock)

    processed, result = orchestrator.commit(file, _records(fixtures_dir))

    assert processed.status is FileStatus.PROCESSED
    assert result.transactions_inserted == 10
    assert result.stores_created == 3
    assert result.stores_updated == 0
    assert temp_db.get_file(file.id).status is FileStatus.PROCESSED
    assert temp_db.get_file(file.id).processed_at == clock.now()
    assert temp_db.count_transactions_for_file(file.id) == 10
    assert len(temp_db.list_stores()) == 3


def test_second_file_reuses_stores(temp_db, clock, fixtures_dir):
    """Test stores are upserted on owner and name."""
    orchestrator = PersistenceOrchestrator(temp_db, clock)
    orchestrator.commit(_processing_file(temp_db, clock), _records(fixtures_dir))
    clock.advance(1)

    _, result = orchestrator.commit(_processing_file(temp_db, clock), _records(fixtures_dir))

    assert result.stores_created == 0
    assert result.stores_updated == 3
    assert len(temp_db.list_stores()) == 3
    assert len(temp_db.list_transactions()) == 20


def test_failure_partway_rolls_back_everything(temp_db, clock, fixtures_dir, monkeypatch):
    """Test a constraint failure on the 7th of 10 rows leaves nothing behind."""
    file = _processing_file(temp_db, clock)

    def break_row(row):
        row["amount"] = 0
        return row

    _fail_after(monkeypatch, 6, break_row)

    with pytest.raises(ProcessingError):
        PersistenceOrchestrator(temp_db, clock).commit(file, _records(fixtures_dir))

    assert temp_db.count_transactions_for_file(file.id) == 0
    assert temp_db.list_stores() == []
    assert temp_db.get_file(file.id).status is FileStatus.PROCESSING


def test_connectivity_failure_rolls_back(temp_db, clock, fixtures_dir, monkeypatch):
    """Test a driver error while building rows is a retryable ProcessingError."""
    file = _processing_file(temp_db, clock)

    def lose_connection(row):
        raise OperationalError("INSERT INTO transactions", {}, Exception("connection lost"))

    _fail_after(monkeypatch, 3, lose_connection)

    with pytest.raises(ProcessingError, match="OperationalError"):
        PersistenceOrchestrator(temp_db, clock).commit(file, _records(fixtures_dir))

    assert temp_db.count_transactions_for_file(file.id) == 0
    assert temp_db.list_stores() == []


def test_existing_store_untouched_after_rollback(temp_db, clock, fixtures_dir, monkeypatch):
    """Test a rolled back file does not bump timestamps of existing stores."""
    orchestrator = PersistenceOrchestrator(temp_db, clock)
    orchestrator.commit(_processing_file(temp_db, clock), _records(fixtures_dir))
    before = {store.id: store.updated_at for store in temp_db.list_stores()}
    clock.advance(60)
    file = _processing_file(temp_db, clock)

    def break_row(row):
        row["amount"] = 0
        return row

    _fail_after(monkeypatch, 0, break_row)

    with pytest.raises(ProcessingError):
        orchestrator.commit(file, _records(fixtures_dir))

    assert {store.id: store.updated_at for store in temp_db.list_stores()} == before
    assert len(temp_db.list_transactions()) == 10


def test_deadline_before_commit_rolls_back(temp_db, clock, fixtures_dir):
    """Test an expired deadline aborts the write just before commit."""
    file = _processing_file(temp_db, clock)
    deadline = Deadline(clock, clock.now() + timedelta(seconds=5))
    records = _records(fixtures_dir)

    original_persist = temp_db.persist_file_records

    def slow_persist(processed_file, records, now, before_commit=None):
        def late_check():
            clock.advance(10)
            before_commit()

        return original_persist(processed_file, records, now, before_commit=late_check)

    temp_db.persist_file_records = slow_persist

    with pytest.raises(DeadlineExceeded):
        PersistenceOrchestrator(temp_db, clock).commit(file, records, deadline)

    assert temp_db.count_transactions_for_file(file.id) == 0
    assert temp_db.list_stores() == []
    assert temp_db.get_file(file.id).status is FileStatus.PROCESSING


def test_expired_deadline_writes_nothing(temp_db, clock, fixtures_dir):
    """Test nothing is attempted once the deadline has passed."""
    file = _processing_file(temp_db, clock)
    deadline = Deadline(clock, clock.now() - timedelta(seconds=1))

    with pytest.raises(DeadlineExceeded):
        PersistenceOrchestrator(temp_db, clock).commit(file, _records(fixtures_dir), deadline)

    assert temp_db.list_stores() == []


def test_commit_requires_processing_status(temp_db, clock, fixtures_dir):
    """Test committing a file that is not Processing is a contract violation."""
    file = _processing_file(temp_db, clock)
    orchestrator = PersistenceOrchestrator(temp_db, clock)
    processed, _ = orchestrator.commit(file, _records(fixtures_dir))

    with pytest.raises(InvalidTransition):
        orchestrator.commit(processed, _records(fixtures_dir))

    assert temp_db.count_transactions_for_file(file.id) == 10


def test_commit_loses_race_when_status_changed(temp_db, clock, fixtures_dir):
    """Test the status compare-and-set refuses to commit over another writer."""
    file = _processing_file(temp_db, clock)
    # Another worker settled the file after we loaded it
    PersistenceOrchestrator(temp_db, clock).commit(file, _records(fixtures_dir))

    with pytest.raises(StaleStatusError):
        PersistenceOrchestrator(temp_db, clock).commit(file, _records(fixtures_dir))

    assert temp_db.count_transactions_for_file(file.id) == 10


def test_store_created_concurrently_fails_then_retry_reuses_it(temp_db, clock, fixtures_dir):
    """Test a store inserted by another worker mid-transaction rolls back, then the retry reuses it."""
    records = _records(fixtures_dir)
    key = records[0].store_key
    records = [record for record in records if record.store_key == key]
    file = _processing_file(temp_db, clock)

    def competing_insert(session, flush_context, instances):
        other = temp_db.session_factory()
        try:
            other.add(
                Store(owner_name=key.owner_name, name=key.name, created_at=clock.now(), updated_at=clock.now())
            )
            other.commit()
        finally:
            other.close()

    # The lookup has already missed when the first flush runs
    event.listen(temp_db._get_session(), "before_flush", competing_insert, once=True)

    with pytest.raises(ProcessingError, match="IntegrityError"):
        PersistenceOrchestrator(temp_db, clock).commit(file, records)

    assert temp_db.count_transactions_for_file(file.id) == 0
    assert temp_db.get_file(file.id).status is FileStatus.PROCESSING
    (existing,) = temp_db.list_stores()
    assert (existing.owner_name, existing.name) == (key.owner_name, key.name)

    clock.advance(5)
    _, result = PersistenceOrchestrator(temp_db, clock).commit(file, records)

    assert result.stores_created == 0
    assert result.stores_updated == 1
    assert result.transactions_inserted == len(records)
    assert [store.id for store in temp_db.list_stores()] == [existing.id]
    assert temp_db.get_file(file.id).status is FileStatus.PROCESSED
