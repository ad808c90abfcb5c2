"""Tests for database mappers."""

from datetime import date, datetime, time, UTC

from cnabproc.database.mappers import (
    as_utc,
    attempt_to_domain,
    file_to_domain,
    notification_to_domain,
    store_to_domain,
    transaction_to_domain,
    transaction_type_to_domain,
)
from cnabproc.database.models import (
    File as ORMFile,
    FileProcessingAttempt as ORMFileProcessingAttempt,
    NotificationAttempt as ORMNotificationAttempt,
    Store as ORMStore,
    Transaction as ORMTransaction,
    TransactionType as ORMTransactionType,
)
from cnabproc.domain.entities import (
    AttemptStatus,
    File,
    FileProcessingAttempt,
    FileStatus,
    Nature,
    NotificationAttempt,
    Sign,
    Store,
    Transaction,
    TransactionType,
)


class TestAsUtc:
    def test_naive_becomes_utc(self):
        assert as_utc(datetime(2024, 3, 1, 12, 0)) == datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    def test_aware_is_unchanged(self):
        value = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
        assert as_utc(value) is value

    def test_none(self):
        assert as_utc(None) is None


class TestFileMapper:
    """Tests for File mapper."""

    def test_file_to_domain(self):
        """Test converting ORM File to domain File."""
        orm_file = ORMFile(
            id="0190a0b0-0000-7000-8000-000000000001",
            name="CNAB.txt",
            size=810,
            blob_key="uploads/0190a0b0-0000-7000-8000-000000000001/CNAB.txt",
            status="Rejected",
            error_message="Line 2: Invalid transaction type 0. Must be 1-9.",
            uploaded_at=datetime(2024, 3, 1, 12, 0),
            processed_at=datetime(2024, 3, 1, 12, 1),
            uploaded_by="ops@example.com",
        )

        file = file_to_domain(orm_file)

        assert isinstance(file, File)
        assert file.status is FileStatus.REJECTED
        assert file.error_message.startswith("Line 2")
        assert file.uploaded_at.tzinfo == UTC
        assert file.processed_at == datetime(2024, 3, 1, 12, 1, tzinfo=UTC)
        assert file.uploaded_by == "ops@example.com"


class TestStoreMapper:
    def test_store_to_domain(self):
        orm_store = ORMStore(
            id=3,
            owner_name="JOAO MACEDO",
            name="BAR DO JOAO",
            created_at=datetime(2024, 3, 1, 12, 0, tzinfo=UTC),
            updated_at=datetime(2024, 3, 2, 12, 0, tzinfo=UTC),
        )

        store = store_to_domain(orm_store)

        assert isinstance(store, Store)
        assert store.id == 3
        assert store.owner_name == "JOAO MACEDO"
        assert store.name == "BAR DO JOAO"


class TestTransactionMapper:
    """Tests for Transaction mapper."""

    def test_transaction_to_domain(self):
        """Test the resolved type is attached to the transaction."""
        orm_type = ORMTransactionType(code=3, description="Financing", nature="Expense", sign="-")
        transaction_type = transaction_type_to_domain(orm_type)
        orm_transaction = ORMTransaction(
            id=10,
            file_id="f-1",
            store_id=3,
            type_code=3,
            amount=14200,
            date=date(2019, 3, 1),
            time=time(15, 34, 53),
            tax_id="09620676017",
            card="4753****3153",
            created_at=datetime(2024, 3, 1, 12, 0),
        )

        transaction = transaction_to_domain(orm_transaction, transaction_type)

        assert isinstance(transaction_type, TransactionType)
        assert transaction_type.nature is Nature.EXPENSE
        assert transaction_type.sign is Sign.DEBIT
        assert isinstance(transaction, Transaction)
        assert transaction.transaction_type == transaction_type
        assert transaction.amount == 14200
        assert transaction.time == time(15, 34, 53)
        assert transaction.created_at.tzinfo == UTC


class TestAttemptMappers:
    def test_attempt_to_domain(self):
        orm_attempt = ORMFileProcessingAttempt(
            id=1,
            file_id="f-1",
            attempt_number=2,
            status="Failed",
            error_message="Storage error",
            started_at=datetime(2024, 3, 1, 12, 0),
            completed_at=None,
            duration_ms=None,
            message_id="m-1",
            invocation_id="i-1",
        )

        attempt = attempt_to_domain(orm_attempt)

        assert isinstance(attempt, FileProcessingAttempt)
        assert attempt.status is AttemptStatus.FAILED
        assert attempt.attempt_number == 2
        assert attempt.completed_at is None

    def test_notification_to_domain(self):
        orm_notification = ORMNotificationAttempt(
            id=1,
            file_id="f-1",
            notification_type="ProcessingCompleted",
            recipient="ops@example.com",
            status="Sent",
            attempt_count=1,
            last_attempt_at=datetime(2024, 3, 1, 12, 0),
            sent_at=datetime(2024, 3, 1, 12, 0),
        )

        notification = notification_to_domain(orm_notification)

        assert isinstance(notification, NotificationAttempt)
        assert notification.status == "Sent"
        assert notification.sent_at.tzinfo == UTC
