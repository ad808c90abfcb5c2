"""Tests for ReportingService."""

from datetime import timedelta
from decimal import Decimal

import pytest

from cnabproc.domain.entities import FileStatus
from cnabproc.domain.errors import NotFoundError
from cnabproc.domain.processing import Delivery
from cnabproc.domain.reporting import ReportingService
from cnabproc.messaging.messages import WorkItem


@pytest.fixture
def reporting_service(temp_db):
    return ReportingService(temp_db)


@pytest.fixture
def processed_file(upload_service, processing_service, clock, fixtures_dir):
    file = upload_service.register_path(fixtures_dir / "CNAB.txt")
    processing_service.process(
        Delivery(WorkItem.for_file(file), "msg-1", 1, clock.now() + timedelta(minutes=5))
    )
    return file


def test_store_balances(reporting_service, processed_file):
    """Test balances apply each transaction type's sign."""
    balances = {
        (b.store.owner_name, b.store.name): b for b in reporting_service.list_store_balances()
    }

    assert balances[("JOAO MACEDO", "BAR DO JOAO")].balance == Decimal("-102.00")
    assert balances[("MARIA JOSEFINA", "LOJA DO O - MATRIZ")].balance == Decimal("332.00")
    assert balances[("MARCOS PEREIRA", "MERCADO DA AVENIDA")].balance == Decimal("-531.00")
    assert sum(b.transaction_count for b in balances.values()) == 10


def test_get_store_balance(reporting_service, processed_file, temp_db):
    store = next(s for s in temp_db.list_stores() if s.name == "BAR DO JOAO")

    balance = reporting_service.get_store_balance(store.id)

    assert balance.store == store
    assert balance.balance == Decimal("-102.00")


def test_get_store_balance_unknown(reporting_service):
    with pytest.raises(NotFoundError, match="Store 999 not found"):
        reporting_service.get_store_balance(999)


def test_balances_ignore_rejected_files(
    reporting_service, processed_file, upload_service, processing_service, clock, cnab_line
):
    """Test a rejected file contributes nothing to balances."""
    file = upload_service.register((cnab_line() + "\n" + cnab_line(type_code="0")).encode(), "bad.txt")
    processing_service.process(
        Delivery(WorkItem.for_file(file), "msg-2", 1, clock.now() + timedelta(minutes=5))
    )

    balances = {b.store.name: b.balance for b in reporting_service.list_store_balances()}

    assert balances["BAR DO JOAO"] == Decimal("-102.00")


def test_file_details(reporting_service, processed_file):
    details = reporting_service.get_file_details(processed_file.id)

    assert details.file.status is FileStatus.PROCESSED
    assert details.transaction_count == 10
    assert len(details.attempts) == 1
    assert details.notifications == []


def test_get_file_unknown(reporting_service):
    with pytest.raises(NotFoundError):
        reporting_service.get_file("nope")


def test_list_files_by_status(reporting_service, processed_file, upload_service, clock):
    clock.advance(1)
    pending = upload_service.register(b"x", "pending.txt")

    assert [f.id for f in reporting_service.list_files()] == [pending.id, processed_file.id]
    assert [f.id for f in reporting_service.list_files(FileStatus.UPLOADED)] == [pending.id]


def test_list_transactions_filters(reporting_service, processed_file, temp_db):
    store = next(s for s in temp_db.list_stores() if s.name == "LOJA DO O - MATRIZ")

    by_store = reporting_service.list_transactions(store_id=store.id)
    by_file = reporting_service.list_transactions(file_id=processed_file.id)

    assert by_store and all(t.store_id == store.id for t in by_store)
    assert len(by_file) == 10


def test_list_transactions_unknown_filters(reporting_service):
    with pytest.raises(NotFoundError):
        reporting_service.list_transactions(store_id=42)
    with pytest.raises(NotFoundError):
        reporting_service.list_transactions(file_id="nope")


def test_transaction_types(reporting_service):
    types = reporting_service.list_transaction_types()

    assert [t.code for t in types] == list(range(1, 10))
    assert {t.code for t in types if t.sign.value == "-"} == {2, 3, 9}
